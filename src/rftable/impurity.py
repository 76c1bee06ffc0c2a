"""
rftable.impurity
================

Impurity-decrease formulas and the split scans built on them.

Scores are "delta impurity" values: larger is better and a split that does
not separate the target at all scores zero.

- Numerical targets use the variance reduction expressed with means::

      DI = -mu_tot**2 + n_left/n_tot * mu_left**2 + n_right/n_tot * mu_right**2

- Categorical targets use the Gini reduction expressed with ``sf``, the sum of
  squared class frequencies of a node::

      DI = -sf_tot/n_tot**2 + sf_left/(n_tot*n_left) + sf_right/(n_tot*n_right)
"""
from __future__ import annotations

from typing import Callable

import numpy as np

EPS = 1e-12


# -----------------------------------------------------------------------------
# Formulas
# -----------------------------------------------------------------------------
def delta_impurity_regr(mu_tot, n_tot, mu_left, n_left, mu_right, n_right):
    """Variance-reduction score; broadcasts over numpy arrays."""
    return (-mu_tot * mu_tot
            + mu_left * mu_left * n_left / n_tot
            + mu_right * mu_right * n_right / n_tot)


def delta_impurity_class(sf_tot, n_tot, sf_left, n_left, sf_right, n_right):
    """Gini-reduction score; broadcasts over numpy arrays."""
    return (-1.0 * sf_tot / (n_tot * n_tot)
            + 1.0 * sf_left / (n_tot * n_left)
            + 1.0 * sf_right / (n_tot * n_right))


def increment_squared_frequency(x, freq: dict, sf: int) -> int:
    """Add one ``x`` to the class counts ``freq``; return the updated ``sf``."""
    f = freq.get(x, 0)
    freq[x] = f + 1
    return sf + 2 * f + 1


def decrement_squared_frequency(x, freq: dict, sf: int) -> int:
    """Remove one ``x`` from the class counts ``freq``; return the updated ``sf``."""
    f = freq[x]
    freq[x] = f - 1
    return sf - 2 * f + 1


def _class_counts(tv: np.ndarray) -> tuple[np.ndarray, int]:
    """One-hot class indicator matrix of ``tv`` and the number of classes."""
    _, y_idx = np.unique(tv, return_inverse=True)
    y_idx = y_idx.reshape(-1)
    k = int(y_idx.max()) + 1 if y_idx.size else 0
    M = np.zeros((y_idx.shape[0], k), dtype=np.int64)
    M[np.arange(y_idx.shape[0]), y_idx] = 1
    return M, k


# -----------------------------------------------------------------------------
# Numerical feature: scan over the feature-sorted sequence
# -----------------------------------------------------------------------------
def _best_position(di: np.ndarray, n_left: np.ndarray, min_samples: int):
    di = np.where(n_left >= min_samples, di, -np.inf)
    if di.size == 0:
        return None, 0.0
    best = int(np.argmax(di))
    if not di[best] > EPS:
        return None, 0.0
    return best, float(di[best])


def numerical_feature_splits_numerical_target(tv: np.ndarray, min_samples: int):
    """
    Best boundary of a feature-sorted sequence for a numerical target.

    Every position ``i`` (left side = first ``i + 1`` values) with at least
    ``min_samples`` values on each side is scored; the first position with the
    highest score above ``EPS`` wins.

    Parameters
    ----------
    tv : ndarray of float
        Target values ordered by ascending feature value, without missing values.
    min_samples : int
        Minimum number of samples on each side.

    Returns
    -------
    best_idx : int or None
        Last position of the left side, or ``None`` if nothing qualifies.
    score : float
        Delta impurity at ``best_idx`` (0.0 when ``best_idx`` is None).
    """
    tv = np.asarray(tv, dtype=float)
    n_tot = tv.shape[0]
    if n_tot < 2 or n_tot < 2 * min_samples:
        return None, 0.0
    # DI is shift invariant; centring keeps the cumsum differences exact
    # for constant or offset targets.
    tv = tv - tv.mean()
    cs = np.cumsum(tv)
    total = cs[-1]
    i = np.arange(n_tot - min_samples)
    n_left = i + 1
    n_right = n_tot - n_left
    mu_left = cs[i] / n_left
    mu_right = (total - cs[i]) / n_right
    di = delta_impurity_regr(total / n_tot, n_tot, mu_left, n_left, mu_right, n_right)
    return _best_position(di, n_left, min_samples)


def numerical_feature_splits_categorical_target(tv: np.ndarray, min_samples: int):
    """Same as :func:`numerical_feature_splits_numerical_target` for class codes."""
    tv = np.asarray(tv, dtype=float)
    n_tot = tv.shape[0]
    if n_tot < 2 or n_tot < 2 * min_samples:
        return None, 0.0
    M, _ = _class_counts(tv)
    left = M.cumsum(axis=0)
    total = left[-1]
    i = np.arange(n_tot - min_samples)
    left = left[i]
    right = total - left
    n_left = i + 1
    n_right = n_tot - n_left
    sf_tot = float((total * total).sum())
    sf_left = (left * left).sum(axis=1).astype(float)
    sf_right = (right * right).sum(axis=1).astype(float)
    di = delta_impurity_class(sf_tot, n_tot, sf_left, n_left, sf_right, n_right)
    return _best_position(di, n_left, min_samples)


# -----------------------------------------------------------------------------
# Categorical feature: greedy category moves
# -----------------------------------------------------------------------------
def _greedy_category_split(fv: np.ndarray, stats: np.ndarray, min_samples: int,
                           score: Callable[[np.ndarray, int], float]):
    """
    Move whole categories from right to left while the score improves.

    Each round every category still on the right is tried on the left; the
    move with the best score above the best seen so far is made. The loop
    stops when no move improves or a single category remains on the right.

    ``stats`` holds one additive sufficient-statistic row per sample;
    ``score(left_stats, n_left)`` evaluates a candidate left side.
    """
    codes, inverse = np.unique(fv, return_inverse=True)
    inverse = inverse.reshape(-1)
    right = {float(c): np.flatnonzero(inverse == k) for k, c in enumerate(codes)}
    cat_stats = {c: stats[m].sum(axis=0) for c, m in right.items()}
    left: dict[float, np.ndarray] = {}

    n_tot = fv.shape[0]
    n_left = 0
    left_stats = np.zeros(stats.shape[1], dtype=stats.dtype)
    di_best = 0.0

    while len(right) > 1:
        best_code = None
        for c, members in right.items():
            nl = n_left + members.size
            if nl < min_samples or n_tot - nl < min_samples:
                continue
            di = score(left_stats + cat_stats[c], nl)
            if di > di_best:
                di_best, best_code = di, c
        if best_code is None:
            break
        members = right.pop(best_code)
        left[best_code] = members
        n_left += members.size
        left_stats = left_stats + cat_stats[best_code]

    return di_best, dict(sorted(left.items())), right


def categorical_feature_splits_numerical_target(tv: np.ndarray, fv: np.ndarray,
                                                min_samples: int):
    """
    Greedy category grouping for a numerical target.

    Parameters
    ----------
    tv : ndarray of float
        Target values without missing entries.
    fv : ndarray of float
        Category codes aligned with ``tv``.
    min_samples : int
        Minimum number of samples on each side.

    Returns
    -------
    score : float
        Best delta impurity found (0.0 if no category was moved).
    left, right : dict
        Category code -> positions (into ``tv``/``fv``), ordered by code. The
        two maps are disjoint and cover every observed category.
    """
    tv = np.asarray(tv, dtype=float)
    fv = np.asarray(fv, dtype=float)
    n_tot = tv.shape[0]
    if n_tot:
        tv = tv - tv.mean()
    total = float(tv.sum())
    mu_tot = total / n_tot if n_tot else 0.0

    def score(left_stats, n_left):
        s_left = float(left_stats[0])
        n_right = n_tot - n_left
        return float(delta_impurity_regr(mu_tot, n_tot, s_left / n_left, n_left,
                                         (total - s_left) / n_right, n_right))

    return _greedy_category_split(fv, tv.reshape(-1, 1), min_samples, score)


def categorical_feature_splits_categorical_target(tv: np.ndarray, fv: np.ndarray,
                                                  min_samples: int):
    """Same as :func:`categorical_feature_splits_numerical_target` for class codes."""
    tv = np.asarray(tv, dtype=float)
    fv = np.asarray(fv, dtype=float)
    n_tot = tv.shape[0]
    M, _ = _class_counts(tv)
    total = M.sum(axis=0)
    sf_tot = float((total * total).sum())

    def score(left_stats, n_left):
        right_stats = total - left_stats
        return float(delta_impurity_class(sf_tot, n_tot,
                                          float((left_stats * left_stats).sum()), n_left,
                                          float((right_stats * right_stats).sum()),
                                          n_tot - n_left))

    return _greedy_category_split(fv, M, min_samples, score)
