"""
rftable.utils
=============

Pure helpers shared by features and the feature table: parsing raw strings
into numeric data or categorical codes, missing-value filtering, stable
sorting and bootstrap sampling of index populations.

Missing values are ``NaN`` inside numpy arrays. ``None`` and the strings in
:data:`NA_STRINGS` are accepted as missing at the input boundary.
"""
from __future__ import annotations

import math
from typing import Any, Iterable, Sequence

import numpy as np
from sklearn.utils import check_random_state

from .errors import InvalidSamplingParameterError

NA_STRINGS = frozenset({"NA", "NaN", "NAN", "nan", "?"})
STR_NAN = "NA"


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------
def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() in NA_STRINGS
    try:
        return bool(np.isnan(value))
    except TypeError:
        return False


def to_numeric_array(values: Iterable[Any]) -> np.ndarray:
    """
    Convert raw values (numbers, numeric strings, ``None`` or NA strings) to a
    float array with ``NaN`` for missing entries.

    Raises
    ------
    ValueError
        If a non-missing string cannot be parsed as a number.
    """
    out = []
    for v in values:
        if is_missing(v):
            out.append(np.nan)
        elif isinstance(v, str):
            out.append(float(v.strip()))
        else:
            out.append(float(v))
    return np.asarray(out, dtype=float)


def to_category_codes(values: Iterable[Any]) -> tuple[np.ndarray, dict[str, int], dict[int, str]]:
    """
    Encode raw labels as integer codes in order of first appearance.

    Returns
    -------
    codes : ndarray of float
        One code per value, ``NaN`` for missing labels.
    mapping : dict
        Raw label -> code.
    back_mapping : dict
        Code -> raw label.
    """
    mapping: dict[str, int] = {}
    back_mapping: dict[int, str] = {}
    codes = []
    for v in values:
        if is_missing(v):
            codes.append(np.nan)
            continue
        label = str(v).strip()
        code = mapping.get(label)
        if code is None:
            code = len(mapping)
            mapping[label] = code
            back_mapping[code] = label
        codes.append(float(code))
    return np.asarray(codes, dtype=float), mapping, back_mapping


def num2str(value: float) -> str:
    if np.isnan(value):
        return STR_NAN
    return f"{value:g}"


# -----------------------------------------------------------------------------
# Filtering and sorting
# -----------------------------------------------------------------------------
def filter_missing(*arrays: np.ndarray) -> tuple[np.ndarray, tuple[np.ndarray, ...]]:
    """
    Return ``(keep, filtered)`` where ``keep`` marks the positions at which
    every array is non-missing and ``filtered`` holds each array restricted to
    those positions, in the original order.
    """
    if not arrays:
        raise ValueError("filter_missing needs at least one array")
    keep = np.ones(len(arrays[0]), dtype=bool)
    for a in arrays:
        keep &= ~np.isnan(a)
    return keep, tuple(a[keep] for a in arrays)


def stable_argsort(values: np.ndarray) -> np.ndarray:
    """Ascending order of ``values``; equal values keep their relative order."""
    return np.argsort(values, kind="mergesort")


# -----------------------------------------------------------------------------
# Sampling
# -----------------------------------------------------------------------------
def check_sampling_parameters(with_replacement: bool, sample_fraction: float) -> None:
    if not sample_fraction > 0.0:
        raise InvalidSamplingParameterError(
            f"sample_fraction must be positive, got {sample_fraction}")
    if not with_replacement and sample_fraction > 1.0:
        raise InvalidSamplingParameterError(
            "when sampling without replacement, sample_fraction must be <= 1.0 "
            f"(got {sample_fraction})")


def bootstrap_indices(population: Sequence[int] | np.ndarray,
                      with_replacement: bool,
                      sample_fraction: float,
                      random_state=None) -> tuple[np.ndarray, np.ndarray]:
    """
    Draw an in-bag sample from ``population`` and return it with its
    out-of-bag complement.

    Parameters
    ----------
    population : array-like of int
        Sorted, unique sample indices eligible for sampling.
    with_replacement : bool
        Draw independently (repeats allowed) or take a prefix of a random
        permutation.
    sample_fraction : float
        ``floor(sample_fraction * len(population))`` indices are drawn. Must be
        positive, and at most 1.0 without replacement.
    random_state : None, int or numpy.random.RandomState
        Source of randomness, resolved with ``check_random_state``.

    Returns
    -------
    in_bag : ndarray of int
        Drawn indices sorted ascending; repeats are kept.
    out_of_bag : ndarray of int
        Population indices absent from ``in_bag``, sorted ascending.

    Raises
    ------
    InvalidSamplingParameterError
        If ``sample_fraction`` is out of range for the sampling mode.
    """
    check_sampling_parameters(with_replacement, sample_fraction)
    rng = check_random_state(random_state)
    population = np.asarray(population, dtype=np.intp)
    n_real = population.size
    n_draw = int(math.floor(sample_fraction * n_real))

    if n_real == 0 or n_draw == 0:
        in_bag = np.empty(0, dtype=np.intp)
    elif with_replacement:
        in_bag = population[rng.randint(0, n_real, size=n_draw)]
    else:
        in_bag = population[rng.permutation(n_real)[:n_draw]]

    in_bag = np.sort(in_bag, kind="mergesort")
    out_of_bag = np.setdiff1d(population, in_bag)
    return in_bag, out_of_bag.astype(np.intp, copy=False)
