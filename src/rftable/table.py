"""
rftable.table
=============

The column store used by the tree learner. A :class:`FeatureTable` owns an
ordered list of features with equal sample counts, the name -> index lookup,
sample identifiers and, optionally, one "contrast" copy of every feature.

Besides read accessors the table implements the single-node split primitive
for each feature type:

- :meth:`FeatureTable.numerical_feature_split` (sorted threshold scan),
- :meth:`FeatureTable.categorical_feature_split` (greedy category grouping),
- :meth:`FeatureTable.textual_feature_split` (hash-code membership),

and :meth:`FeatureTable.bootstrap` for in-bag / out-of-bag sampling.

After construction every method except :meth:`permute_contrasts`,
:meth:`replace_feature` and :meth:`replace_feature_data` only reads the
table, so split searches may run on several threads at once as long as
none of those three runs concurrently.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import numpy as np
from sklearn.utils import check_random_state

from .errors import (DimensionMismatchError, DuplicateFeatureNameError,
                     EmptyTableError, UnknownCategoryValueError)
from .feature import (CategoricalFeature, Feature, NumericalFeature,
                      TextualFeature, make_feature)
from .impurity import (EPS, categorical_feature_splits_categorical_target,
                       categorical_feature_splits_numerical_target,
                       decrement_squared_frequency, delta_impurity_class,
                       delta_impurity_regr, increment_squared_frequency,
                       numerical_feature_splits_categorical_target,
                       numerical_feature_splits_numerical_target)
from .utils import (STR_NAN, bootstrap_indices, filter_missing, is_missing,
                    num2str, stable_argsort)

logger = logging.getLogger(__name__)

NO_SAMPLE_ID = "NO_SAMPLE_ID"
CONTRAST_SUFFIX = "_CONTRAST"


def _as_indices(sample_ics) -> np.ndarray:
    return np.asarray(sample_ics, dtype=np.intp).reshape(-1)


# -----------------------------------------------------------------------------
# Split result
# -----------------------------------------------------------------------------
@dataclass
class SplitResult:
    """Outcome of one split search.

    ``score == 0.0`` with an empty ``left`` means no qualifying split was
    found; ``right`` then holds the input population unchanged.
    """
    score: float = 0.0
    left: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.intp))
    right: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=np.intp))
    feature_idx: int | None = None
    split_value: float | None = None  # numerical: values <= split_value go left
    split_values_left: frozenset = frozenset()   # categorical codes
    split_values_right: frozenset = frozenset()
    hash_code: int | None = None  # textual: samples containing it go left

    @property
    def is_split(self) -> bool:
        return self.left.size > 0 and self.score != 0.0

    @property
    def n_left(self) -> int:
        return int(self.left.size)

    @property
    def n_right(self) -> int:
        return int(self.right.size)


def _no_split(feature_idx: int, sample_ics: np.ndarray, **kw) -> SplitResult:
    return SplitResult(score=0.0, right=sample_ics.copy(), feature_idx=feature_idx, **kw)


# -----------------------------------------------------------------------------
# Table
# -----------------------------------------------------------------------------
class FeatureTable:
    """
    Column store of typed features.

    Parameters
    ----------
    features : sequence of Feature
        Columns in index order. All must have the same number of samples and
        distinct names.
    use_contrasts : bool, default=False
        Append a copy ``<name>_CONTRAST`` of every feature at index
        ``i + n_features``. The copies are identical until
        :meth:`permute_contrasts` shuffles them.
    sample_headers : sequence of str or None, default=None
        Sample identifiers. Defaults to ``"NO_SAMPLE_ID"`` for every sample.

    Raises
    ------
    EmptyTableError
        If there are no features or no samples.
    DimensionMismatchError
        If feature lengths or the number of sample headers disagree.
    DuplicateFeatureNameError
        If two features (contrasts included) share a name.

    Notes
    -----
    Validation happens before any state is stored, so a failed construction
    leaves nothing half-built.
    """

    def __init__(self, features: Sequence[Feature], use_contrasts: bool = False,
                 sample_headers: Sequence[str] | None = None):
        features = list(features)
        if not features:
            raise EmptyTableError("cannot build a feature table without features")
        n_samples = features[0].n_samples
        if n_samples == 0:
            raise EmptyTableError("cannot build a feature table without samples")

        name2idx: dict[str, int] = {}
        for i, f in enumerate(features):
            if f.n_samples != n_samples:
                raise DimensionMismatchError(
                    f"feature '{f.name}' has {f.n_samples} samples, expected {n_samples}")
            if f.name in name2idx:
                raise DuplicateFeatureNameError(f"duplicate feature name '{f.name}'")
            name2idx[f.name] = i

        if sample_headers is None or len(sample_headers) == 0:
            headers = [NO_SAMPLE_ID] * n_samples
        else:
            headers = [str(h) for h in sample_headers]
            if len(headers) != n_samples:
                raise DimensionMismatchError(
                    f"{len(headers)} sample headers given for {n_samples} samples")

        n_features = len(features)
        if use_contrasts:
            for i in range(n_features):
                contrast = features[i].renamed(features[i].name + CONTRAST_SUFFIX,
                                               is_contrast=True)
                if contrast.name in name2idx:
                    raise DuplicateFeatureNameError(
                        f"contrast name '{contrast.name}' collides with an existing feature")
                name2idx[contrast.name] = len(features)
                features.append(contrast)

        self.use_contrasts = bool(use_contrasts)
        self._features = features
        self._name2idx = name2idx
        self._n_features = n_features
        self._sample_headers = headers
        logger.debug("built feature table: %d features (%d stored), %d samples",
                     n_features, len(features), n_samples)

    @classmethod
    def from_columns(cls, columns: Iterable[tuple[str, str, Iterable[Any]]],
                     sample_headers: Sequence[str] | None = None,
                     use_contrasts: bool = False) -> "FeatureTable":
        """
        Build a table from parsed columns.

        Parameters
        ----------
        columns : iterable of (kind, name, values)
            ``kind`` is one of ``"NUM"``, ``"CAT"``, ``"TXT"``; ``values`` holds
            one raw value per sample.
        sample_headers : sequence of str or None
            Sample identifiers, if the source format has them.
        use_contrasts : bool, default=False
            See :class:`FeatureTable`.
        """
        features = [make_feature(kind, values, name) for kind, name, values in columns]
        return cls(features, use_contrasts=use_contrasts, sample_headers=sample_headers)

    # ------------------------------------------------------------------
    # Shape and lookup
    # ------------------------------------------------------------------
    def n_features(self) -> int:
        """Number of original features; contrasts are not counted."""
        return self._n_features

    def n_samples(self) -> int:
        return len(self._sample_headers)

    @property
    def features(self) -> tuple[Feature, ...]:
        """All stored features, contrasts included."""
        return tuple(self._features)

    @property
    def sample_headers(self) -> list[str]:
        return list(self._sample_headers)

    def get_feature(self, feature_idx: int) -> Feature:
        return self._features[feature_idx]

    def get_feature_idx(self, name: str) -> int | None:
        """Index of the feature called ``name``, or ``None`` if there is none."""
        return self._name2idx.get(name)

    def get_feature_name(self, feature_idx: int) -> str:
        return self._features[feature_idx].name

    def get_sample_name(self, sample_idx: int) -> str:
        return self._sample_headers[sample_idx]

    def is_numerical(self, feature_idx: int) -> bool:
        return self._features[feature_idx].is_numerical

    def is_categorical(self, feature_idx: int) -> bool:
        return self._features[feature_idx].is_categorical

    def is_textual(self, feature_idx: int) -> bool:
        return self._features[feature_idx].is_textual

    def is_contrast(self, feature_idx: int) -> bool:
        return self._features[feature_idx].is_contrast

    # ------------------------------------------------------------------
    # Data access
    # ------------------------------------------------------------------
    def _values(self, feature_idx: int) -> np.ndarray:
        f = self._features[feature_idx]
        if f.is_textual:
            raise TypeError(f"textual feature '{f.name}' has no value vector")
        return f.data

    def _textual(self, feature_idx: int) -> TextualFeature:
        f = self._features[feature_idx]
        if not f.is_textual:
            raise TypeError(f"feature '{f.name}' is not textual")
        return f

    def get_feature_data(self, feature_idx: int, sample_ics=None) -> np.ndarray:
        """
        Values of a numerical or categorical feature (codes for categorical),
        for all samples or for ``sample_ics`` in the given order. Missing
        values are ``NaN``. The returned array is a copy.
        """
        data = self._values(feature_idx)
        if sample_ics is None:
            return data.copy()
        return data[_as_indices(sample_ics)]

    def get_filtered_feature_data(self, feature_idx: int, sample_ics) -> tuple[np.ndarray, np.ndarray]:
        """Non-missing values of a feature over ``sample_ics`` and their indices."""
        ics = _as_indices(sample_ics)
        keep, (values,) = filter_missing(self._values(feature_idx)[ics])
        return values, ics[keep]

    def raw_value(self, feature_idx: int, value: float) -> str:
        """
        String form of a stored value: ``"NA"`` when missing, ``%g`` formatting
        for numerical features, the original label for categorical ones.

        Raises
        ------
        UnknownCategoryValueError
            If a categorical code has no label.
        """
        f = self._features[feature_idx]
        if f.is_textual:
            raise TypeError(f"textual feature '{f.name}' has no raw values")
        if np.isnan(value):
            return STR_NAN
        if f.is_numerical:
            return num2str(value)
        label = f.back_mapping.get(int(value)) if float(value).is_integer() else None
        if label is None:
            raise UnknownCategoryValueError(
                f"feature '{f.name}' has no category for code {value!r}")
        return label

    def get_raw_feature_data(self, feature_idx: int, sample_idx: int) -> str:
        return self.raw_value(feature_idx, self._values(feature_idx)[sample_idx])

    def get_raw_feature_column(self, feature_idx: int) -> list[str]:
        data = self._values(feature_idx)
        return [self.raw_value(feature_idx, v) for v in data]

    def n_real_samples(self, feature_idx: int, other_idx: int | None = None) -> int:
        """Number of samples with a value on one feature (or on both of two)."""
        if self.is_textual(feature_idx):
            real = np.ones(self.n_samples(), dtype=bool)
        else:
            real = ~np.isnan(self._values(feature_idx))
        if other_idx is not None and not self.is_textual(other_idx):
            real &= ~np.isnan(self._values(other_idx))
        return int(real.sum())

    def n_categories(self, feature_idx: int) -> int:
        f = self._features[feature_idx]
        return len(f.mapping) if f.is_categorical else 0

    def n_max_categories(self) -> int:
        return max(self.n_categories(i) for i in range(self._n_features))

    def categories(self, feature_idx: int) -> list[str]:
        f = self._features[feature_idx]
        return f.categories() if f.is_categorical else []

    def pearson_correlation(self, feature_idx1: int, feature_idx2: int) -> float:
        """Pearson correlation over samples where both features have values."""
        x, y, _ = self.filter_pair(feature_idx1, feature_idx2, np.arange(self.n_samples()))
        if x.size < 2:
            return float("nan")
        return float(np.corrcoef(x, y)[0, 1])

    # ------------------------------------------------------------------
    # Text features
    # ------------------------------------------------------------------
    def has_hash(self, feature_idx: int, sample_idx: int, hash_code: int) -> bool:
        return self._textual(feature_idx).has_hash(sample_idx, hash_code)

    def get_hash(self, feature_idx: int, sample_idx: int, integer: int) -> int:
        return self._textual(feature_idx).get_hash(sample_idx, integer)

    def get_feature_entropy(self, feature_idx: int) -> float:
        """Presence entropy of a textual feature (see :meth:`TextualFeature.entropy`)."""
        return self._textual(feature_idx).entropy()

    # ------------------------------------------------------------------
    # Mutation (setup phase only)
    # ------------------------------------------------------------------
    def permute_contrasts(self, random_state=None) -> None:
        """
        Shuffle every contrast feature once.

        Values move only among the samples where the feature is non-missing,
        so missing positions stay where they were. Original features are not
        touched.
        """
        if not self.use_contrasts:
            raise ValueError("table was built without contrast features")
        rng = check_random_state(random_state)
        for i in range(self._n_features, 2 * self._n_features):
            self._features[i] = self._features[i].permuted(rng)
        logger.debug("permuted %d contrast features", self._n_features)

    def replace_feature(self, feature_idx: int, feature: Feature) -> None:
        """
        Swap in ``feature`` at ``feature_idx``. The slot keeps its name and
        contrast tag.

        Raises
        ------
        DimensionMismatchError
            If ``feature`` has a different number of samples.
        """
        old = self._features[feature_idx]
        if feature.n_samples != old.n_samples:
            raise DimensionMismatchError(
                f"replacement for '{old.name}' has {feature.n_samples} samples, "
                f"expected {old.n_samples}")
        self._features[feature_idx] = feature.renamed(old.name, is_contrast=old.is_contrast)
        logger.debug("replaced feature %d ('%s') with a %s feature",
                     feature_idx, old.name, feature.kind)

    def replace_feature_data(self, feature_idx: int, values: Iterable[Any]) -> None:
        """Replace a feature's data; strings make it categorical, numbers numerical."""
        values = list(values)
        name = self._features[feature_idx].name
        if any(isinstance(v, str) and not is_missing(v) for v in values):
            feature = CategoricalFeature.from_strings(values, name)
        else:
            feature = NumericalFeature.from_values(values, name)
        self.replace_feature(feature_idx, feature)

    # ------------------------------------------------------------------
    # Filtering, sorting, sampling
    # ------------------------------------------------------------------
    def filter_pair(self, feature_idx: int, target_idx: int,
                    sample_ics) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Drop samples missing either the feature or the target value.

        Returns
        -------
        target_values, feature_values, sample_ics : ndarray
            Equal-length arrays in the original relative order.
        """
        ics = _as_indices(sample_ics)
        fv = self._values(feature_idx)[ics]
        tv = self._values(target_idx)[ics]
        keep, (tv, fv) = filter_missing(tv, fv)
        return tv, fv, ics[keep]

    def filter_sort_ascending(self, feature_idx: int, target_idx: int,
                              sample_ics) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        :meth:`filter_pair`, then a stable ascending sort by feature value.

        Returns
        -------
        feature_values, target_values, sample_ics : ndarray
            Reordered identically; ties keep their original relative order.
        """
        tv, fv, ics = self.filter_pair(feature_idx, target_idx, sample_ics)
        order = stable_argsort(fv)
        return fv[order], tv[order], ics[order]

    def bootstrap(self, feature_idx: int, with_replacement: bool = True,
                  sample_fraction: float = 1.0,
                  random_state=None) -> tuple[np.ndarray, np.ndarray]:
        """
        In-bag and out-of-bag sample indices drawn from the samples that have
        a value on ``feature_idx`` (all samples for a textual feature).

        See :func:`rftable.utils.bootstrap_indices` for the sampling rules.

        Raises
        ------
        InvalidSamplingParameterError
            If ``sample_fraction`` is out of range for the sampling mode.
        """
        if self.is_textual(feature_idx):
            population = np.arange(self.n_samples(), dtype=np.intp)
        else:
            population = np.flatnonzero(~np.isnan(self._values(feature_idx)))
        in_bag, oob = bootstrap_indices(population, with_replacement, sample_fraction,
                                        random_state)
        logger.debug("bootstrap on '%s': %d in bag, %d out of bag (population %d)",
                     self.get_feature_name(feature_idx), in_bag.size, oob.size,
                     population.size)
        return in_bag, oob

    # ------------------------------------------------------------------
    # Split search
    # ------------------------------------------------------------------
    def numerical_feature_split(self, target_idx: int, feature_idx: int,
                                min_samples: int, sample_ics) -> SplitResult:
        """
        Best threshold split of ``sample_ics`` on a numerical feature.

        Samples missing the feature or target are dropped, the rest are sorted
        by feature value and every sorted position is scored as a boundary
        (ties in the feature value included). Samples with a value ``<=
        split_value`` go left.

        Parameters
        ----------
        target_idx : int
            Target feature (numerical or categorical).
        feature_idx : int
            Candidate feature.
        min_samples : int
            Minimum samples per side; values below 1 count as 1.
        sample_ics : array-like of int
            Population to split. Not modified.

        Returns
        -------
        SplitResult
            With ``split_value`` set on success.
        """
        min_samples = max(1, int(min_samples))
        ics_in = _as_indices(sample_ics)
        fv, tv, ics = self.filter_sort_ascending(feature_idx, target_idx, ics_in)
        n_tot = fv.size
        if n_tot < 2 * min_samples:
            return _no_split(feature_idx, ics_in)

        if self.is_numerical(target_idx):
            best_idx, score = numerical_feature_splits_numerical_target(tv, min_samples)
        else:
            best_idx, score = numerical_feature_splits_categorical_target(tv, min_samples)
        if best_idx is None:
            return _no_split(feature_idx, ics_in)

        n_left = best_idx + 1
        return SplitResult(score=score, left=ics[:n_left], right=ics[n_left:],
                           feature_idx=feature_idx, split_value=float(fv[best_idx]))

    def categorical_feature_split(self, target_idx: int, feature_idx: int,
                                  min_samples: int, sample_ics) -> SplitResult:
        """
        Best grouping of categories into a left and a right side.

        Samples missing the feature or target are dropped. Categories are
        moved greedily to the left while the score improves. On success
        ``split_values_left`` and ``split_values_right`` partition the
        category codes observed in the filtered population, and ``left`` /
        ``right`` list member samples in ascending category-code order.
        """
        min_samples = max(1, int(min_samples))
        ics_in = _as_indices(sample_ics)
        tv, fv, ics = self.filter_pair(feature_idx, target_idx, ics_in)
        n_tot = fv.size
        if n_tot < 2 * min_samples:
            return _no_split(feature_idx, ics_in)

        if self.is_numerical(target_idx):
            score, fmap_left, fmap_right = categorical_feature_splits_numerical_target(
                tv, fv, min_samples)
        else:
            score, fmap_left, fmap_right = categorical_feature_splits_categorical_target(
                tv, fv, min_samples)
        if abs(score) < EPS:
            return _no_split(feature_idx, ics_in)

        left = np.concatenate([ics[m] for m in fmap_left.values()])
        right = np.concatenate([ics[m] for m in fmap_right.values()])
        return SplitResult(score=score, left=left, right=right, feature_idx=feature_idx,
                           split_values_left=frozenset(fmap_left),
                           split_values_right=frozenset(fmap_right))

    def textual_feature_split(self, target_idx: int, feature_idx: int, hash_code: int,
                              min_samples: int, sample_ics) -> SplitResult:
        """
        Split ``sample_ics`` by whether a sample's text contains ``hash_code``.

        One pass over the population accumulates the target statistics of
        both sides. No filtering is done, so the caller passes a population
        with known target values (e.g. a bootstrap on the target).
        """
        min_samples = max(1, int(min_samples))
        ics = _as_indices(sample_ics)
        hash_sets = self._textual(feature_idx).hash_sets
        target = self._values(target_idx)
        n_tot = ics.size
        left: list[int] = []
        right: list[int] = []

        if self.is_numerical(target_idx):
            mu_left = mu_right = mu_tot = 0.0
            for idx in ics:
                x = float(target[idx])
                if hash_code in hash_sets[idx]:
                    left.append(idx)
                    mu_left += (x - mu_left) / len(left)
                else:
                    right.append(idx)
                    mu_right += (x - mu_right) / len(right)
                mu_tot += x / n_tot
            stats = (mu_tot, mu_left, mu_right)
            impurity = delta_impurity_regr
        else:
            # Everything starts on the right; matching samples move left.
            freq_left: dict = {}
            freq_right: dict = {}
            sf_left = sf_right = 0
            for idx in ics:
                sf_right = increment_squared_frequency(float(target[idx]), freq_right, sf_right)
            sf_tot = sf_right
            for idx in ics:
                if hash_code in hash_sets[idx]:
                    x = float(target[idx])
                    left.append(idx)
                    sf_left = increment_squared_frequency(x, freq_left, sf_left)
                    sf_right = decrement_squared_frequency(x, freq_right, sf_right)
                else:
                    right.append(idx)
            stats = (sf_tot, sf_left, sf_right)
            impurity = delta_impurity_class

        n_left, n_right = len(left), len(right)
        if n_left < min_samples or n_right < min_samples:
            return _no_split(feature_idx, ics, hash_code=hash_code)

        score = float(impurity(stats[0], n_tot, stats[1], n_left, stats[2], n_right))
        return SplitResult(score=score, left=np.asarray(left, dtype=np.intp),
                           right=np.asarray(right, dtype=np.intp),
                           feature_idx=feature_idx, hash_code=hash_code)
