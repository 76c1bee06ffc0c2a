"""Node-level split search with scikit-learn style parameters."""
from __future__ import annotations

import logging

import numpy as np
from sklearn.base import BaseEstimator
from sklearn.utils import check_random_state

from .table import FeatureTable, SplitResult
from .utils import check_sampling_parameters

logger = logging.getLogger(__name__)


class NodeSplitter(BaseEstimator):
    """
    Finds the split of one tree node and draws bootstrap samples for a tree.

    Parameters
    ----------
    min_samples : int, default=1
        Minimum number of samples on each side of a split.
    with_replacement : bool, default=True
        Bootstrap with replacement.
    sample_fraction : float, default=1.0
        Fraction of the non-missing population drawn per bootstrap. Must be
        positive, and at most 1.0 without replacement.
    random_state : int, RandomState or None, default=None
        Seed or generator used for bootstrapping and for picking hash codes
        of textual features.

    Notes
    -----
    The random generator is created on first use and then reused, so
    repeated calls draw different samples even with an integer seed.
    """

    def __init__(self, *, min_samples: int = 1, with_replacement: bool = True,
                 sample_fraction: float = 1.0, random_state=None):
        self.min_samples = int(min_samples)
        self.with_replacement = bool(with_replacement)
        self.sample_fraction = float(sample_fraction)
        self.random_state = random_state

    def _rng(self):
        if getattr(self, "rng_", None) is None:
            self.rng_ = check_random_state(self.random_state)
        return self.rng_

    def _check_params(self):
        if self.min_samples < 1:
            raise ValueError(f"min_samples must be >= 1, got {self.min_samples}")
        check_sampling_parameters(self.with_replacement, self.sample_fraction)

    def bootstrap(self, table: FeatureTable, target_idx: int):
        """In-bag and out-of-bag indices over samples with a known target."""
        self._check_params()
        return table.bootstrap(target_idx, self.with_replacement, self.sample_fraction,
                               random_state=self._rng())

    def draw_hash(self, table: FeatureTable, feature_idx: int, sample_ics) -> int | None:
        """
        Pick a hash code of a textual feature from a random sample of the
        population. Returns ``None`` if no sample has any token.
        """
        if not table.is_textual(feature_idx):
            raise TypeError(f"feature '{table.get_feature_name(feature_idx)}' is not textual")
        rng = self._rng()
        ics = np.asarray(sample_ics, dtype=np.intp).reshape(-1)
        hash_sets = table.get_feature(feature_idx).hash_sets
        candidates = [i for i in ics if hash_sets[i]]
        if not candidates:
            return None
        sample_idx = candidates[rng.randint(len(candidates))]
        return table.get_hash(feature_idx, sample_idx, int(rng.randint(np.iinfo(np.int32).max)))

    def split(self, table: FeatureTable, target_idx: int, feature_idx: int, sample_ics,
              hash_code: int | None = None) -> SplitResult:
        """
        Split ``sample_ics`` on one candidate feature, dispatching on its type.

        For a textual feature ``hash_code`` selects the token to test; when it
        is omitted one is drawn with :meth:`draw_hash`.
        """
        self._check_params()
        if table.is_numerical(feature_idx):
            return table.numerical_feature_split(target_idx, feature_idx,
                                                 self.min_samples, sample_ics)
        if table.is_categorical(feature_idx):
            return table.categorical_feature_split(target_idx, feature_idx,
                                                   self.min_samples, sample_ics)
        if hash_code is None:
            hash_code = self.draw_hash(table, feature_idx, sample_ics)
            if hash_code is None:
                ics = np.asarray(sample_ics, dtype=np.intp).reshape(-1)
                return SplitResult(right=ics.copy(), feature_idx=feature_idx)
        return table.textual_feature_split(target_idx, feature_idx, hash_code,
                                           self.min_samples, sample_ics)

    def best_split(self, table: FeatureTable, target_idx: int, candidate_ics,
                   sample_ics) -> SplitResult:
        """
        Best split over several candidate features.

        The target itself is skipped. Ties keep the earlier candidate. If no
        candidate splits, the result has score 0.0 and ``right`` equal to the
        population.
        """
        ics = np.asarray(sample_ics, dtype=np.intp).reshape(-1)
        best = SplitResult(right=ics.copy())
        for feature_idx in candidate_ics:
            if feature_idx == target_idx:
                continue
            result = self.split(table, target_idx, feature_idx, ics)
            if result.score > best.score:
                best = result
        if best.is_split:
            logger.debug("best split on '%s': score %.6g, %d | %d",
                         table.get_feature_name(best.feature_idx), best.score,
                         best.n_left, best.n_right)
        return best
