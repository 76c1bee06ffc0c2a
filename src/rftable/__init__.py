# rftable/__init__.py
"""
rftable: typed feature store and node split search for tree ensembles.

Exports:
    - FeatureTable, SplitResult
    - NumericalFeature, CategoricalFeature, TextualFeature, make_feature
    - NodeSplitter
    - the exceptions of :mod:`rftable.errors`
"""
from .errors import (DimensionMismatchError, DuplicateFeatureNameError,
                     EmptyTableError, FeatureTableError,
                     InvalidSamplingParameterError, UnknownCategoryValueError)
from .feature import (CategoricalFeature, Feature, NumericalFeature,
                      TextualFeature, make_feature)
from .splitter import NodeSplitter
from .table import FeatureTable, SplitResult

__all__ = [
    "FeatureTable", "SplitResult", "NodeSplitter",
    "Feature", "NumericalFeature", "CategoricalFeature", "TextualFeature", "make_feature",
    "FeatureTableError", "DimensionMismatchError", "InvalidSamplingParameterError",
    "UnknownCategoryValueError", "DuplicateFeatureNameError", "EmptyTableError",
]
__version__ = "0.1.0"
