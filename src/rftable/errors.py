"""Exception types raised by :mod:`rftable`.

Every error derives from :class:`FeatureTableError` and also from the builtin
exception matching its meaning, so callers that already catch ``ValueError``
or ``KeyError`` keep working.
"""
from __future__ import annotations


class FeatureTableError(Exception):
    """Base class for all feature table errors."""


class DimensionMismatchError(FeatureTableError, ValueError):
    """Data length does not match the table's sample count."""


class InvalidSamplingParameterError(FeatureTableError, ValueError):
    """Bootstrap fraction is out of range for the chosen sampling mode."""


class UnknownCategoryValueError(FeatureTableError, KeyError):
    """A categorical code has no entry in the backward mapping."""


class DuplicateFeatureNameError(FeatureTableError, ValueError):
    """Two features in one table share a name."""


class EmptyTableError(FeatureTableError, ValueError):
    """The input matrix has no features or no samples."""
