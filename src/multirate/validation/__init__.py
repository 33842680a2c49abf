# -*- coding: utf-8 -*-
"""Regression validation: recorded series, reference database, comparators."""

from .series import Series, ObservedSeries, ReferenceSeries
from .dtw import dtw_distance, dtw_cost_matrix, warping_path
from .database import EnsembleStats, ReferenceDatabase, ReferenceRecord
from .comparators import (
    ComparisonResult,
    Comparator,
    EnsembleAverageComparator,
    DtwComparator,
    make_comparator,
)
from .validator import RegressionValidator, ValidationReport

__all__ = [
    "Series",
    "ObservedSeries",
    "ReferenceSeries",
    "dtw_distance",
    "dtw_cost_matrix",
    "warping_path",
    "EnsembleStats",
    "ReferenceDatabase",
    "ReferenceRecord",
    "ComparisonResult",
    "Comparator",
    "EnsembleAverageComparator",
    "DtwComparator",
    "make_comparator",
    "RegressionValidator",
    "ValidationReport",
]
