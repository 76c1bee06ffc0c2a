"""
rftable.feature
===============

Typed feature columns. A feature is exactly one of

- :class:`NumericalFeature`: float values, ``NaN`` marks a missing value;
- :class:`CategoricalFeature`: integer codes stored as floats (``NaN`` for
  missing) with the label <-> code tables;
- :class:`TextualFeature`: one set of 32-bit token hashes per sample.

Features are immutable once built: their arrays are read-only and a table
changes a column only by swapping in a new feature object.
"""
from __future__ import annotations

import dataclasses
import math
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

import numpy as np

from .hashing import hash_text
from .utils import to_category_codes, to_numeric_array

NUM, CAT, TXT = "NUM", "CAT", "TXT"


def _readonly(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=float, copy=True)
    if a.ndim != 1:
        raise ValueError(f"feature data must be one-dimensional, got shape {a.shape}")
    a.flags.writeable = False
    return a


def _permute_real_values(data: np.ndarray, rng) -> np.ndarray:
    out = data.copy()
    real = np.flatnonzero(~np.isnan(data))
    out[real] = data[real][rng.permutation(real.size)]
    return out


# -----------------------------------------------------------------------------
# Base
# -----------------------------------------------------------------------------
class Feature(ABC):
    """Common interface of the three feature variants."""

    kind: str = ""
    name: str
    is_contrast: bool

    @property
    @abstractmethod
    def n_samples(self) -> int:
        ...

    @abstractmethod
    def permuted(self, rng) -> "Feature":
        """Return a copy with values shuffled among the non-missing samples."""

    @property
    def is_numerical(self) -> bool:
        return self.kind == NUM

    @property
    def is_categorical(self) -> bool:
        return self.kind == CAT

    @property
    def is_textual(self) -> bool:
        return self.kind == TXT

    def renamed(self, name: str, *, is_contrast: bool | None = None) -> "Feature":
        """Copy of this feature under a new name."""
        flag = self.is_contrast if is_contrast is None else bool(is_contrast)
        return dataclasses.replace(self, name=name, is_contrast=flag)


# -----------------------------------------------------------------------------
# Variants
# -----------------------------------------------------------------------------
@dataclass(eq=False)
class NumericalFeature(Feature):
    name: str
    data: np.ndarray
    is_contrast: bool = False

    kind = NUM

    def __post_init__(self):
        self.data = _readonly(self.data)

    @classmethod
    def from_values(cls, values: Iterable[Any], name: str) -> "NumericalFeature":
        """Build from numbers or numeric strings; ``None``/NA strings are missing."""
        return cls(name, to_numeric_array(values))

    from_strings = from_values

    @property
    def n_samples(self) -> int:
        return int(self.data.shape[0])

    def permuted(self, rng) -> "NumericalFeature":
        return dataclasses.replace(self, data=_permute_real_values(self.data, rng))


@dataclass(eq=False)
class CategoricalFeature(Feature):
    name: str
    data: np.ndarray
    mapping: dict[str, int] = field(default_factory=dict)
    back_mapping: dict[int, str] = field(default_factory=dict)
    is_contrast: bool = False

    kind = CAT

    def __post_init__(self):
        self.data = _readonly(self.data)
        if len(self.mapping) != len(self.back_mapping):
            raise ValueError(f"feature '{self.name}': mapping and back_mapping differ in size")
        for label, code in self.mapping.items():
            if self.back_mapping.get(code) != label:
                raise ValueError(
                    f"feature '{self.name}': mapping and back_mapping are not inverses "
                    f"at label '{label}'")
        codes = np.unique(self.data[~np.isnan(self.data)])
        unknown = [c for c in codes if int(c) not in self.back_mapping or c != int(c)]
        if unknown:
            raise ValueError(f"feature '{self.name}': codes {unknown} have no label")

    @classmethod
    def from_strings(cls, values: Iterable[Any], name: str) -> "CategoricalFeature":
        """Encode raw labels in order of first appearance."""
        codes, mapping, back_mapping = to_category_codes(values)
        return cls(name, codes, mapping, back_mapping)

    @property
    def n_samples(self) -> int:
        return int(self.data.shape[0])

    def categories(self) -> list[str]:
        return [self.back_mapping[c] for c in sorted(self.back_mapping)]

    def permuted(self, rng) -> "CategoricalFeature":
        return dataclasses.replace(self, data=_permute_real_values(self.data, rng))


@dataclass(eq=False)
class TextualFeature(Feature):
    name: str
    hash_sets: tuple
    is_contrast: bool = False

    kind = TXT

    def __post_init__(self):
        self.hash_sets = tuple(frozenset(int(h) for h in hs) for hs in self.hash_sets)

    @classmethod
    def from_strings(cls, values: Iterable[Any], name: str) -> "TextualFeature":
        """Hash every sample's text; ``None`` gives an empty hash set."""
        return cls(name, tuple(hash_text("" if v is None else str(v)) for v in values))

    @property
    def n_samples(self) -> int:
        return len(self.hash_sets)

    def has_hash(self, sample_idx: int, hash_code: int) -> bool:
        return hash_code in self.hash_sets[sample_idx]

    def get_hash(self, sample_idx: int, integer: int) -> int:
        """Return the ``integer mod |set|``-th code (in sorted order) of a sample."""
        hs = self.hash_sets[sample_idx]
        if not hs:
            raise ValueError(f"sample {sample_idx} of feature '{self.name}' has no hash codes")
        return sorted(hs)[integer % len(hs)]

    def entropy(self) -> float:
        """
        Presence entropy summed over all distinct hash codes.

        For each code with presence fraction ``f`` among the samples the term
        ``-(f ln f + (1 - f) ln(1 - f))`` is added; codes present in every
        sample contribute nothing.
        """
        n = len(self.hash_sets)
        if n == 0:
            return 0.0
        counts = Counter(h for hs in self.hash_sets for h in hs)
        total = 0.0
        for c in counts.values():
            f = c / n
            if 0.0 < f < 1.0:
                total -= f * math.log(f) + (1.0 - f) * math.log(1.0 - f)
        return total

    def permuted(self, rng) -> "TextualFeature":
        order = rng.permutation(len(self.hash_sets))
        return dataclasses.replace(self, hash_sets=tuple(self.hash_sets[i] for i in order))


# -----------------------------------------------------------------------------
# Factory
# -----------------------------------------------------------------------------
def make_feature(kind: str, values: Iterable[Any], name: str) -> Feature:
    """
    Build a feature from a type tag and raw column values.

    Parameters
    ----------
    kind : {"NUM", "CAT", "TXT"}
        Type tag supplied by the file parser (case-insensitive).
    values : iterable
        Raw values, one per sample.
    name : str
        Feature name.

    Raises
    ------
    ValueError
        For an unknown type tag or unparsable numeric data.
    """
    tag = str(kind).upper()
    if tag == NUM:
        return NumericalFeature.from_values(values, name)
    if tag == CAT:
        return CategoricalFeature.from_strings(values, name)
    if tag == TXT:
        return TextualFeature.from_strings(values, name)
    raise ValueError(f"unknown feature type '{kind}' for feature '{name}'")
