"""
DataLens - dataset profiling, cleaning and quality scoring
"""
from datalens.models import CorrelationResult, DatasetAnalysis
from datalens.services import (
    analyze,
    correlation_matrix,
    list_sheets,
    parse_rows,
    serialize_csv,
    serialize_workbook,
)

__version__ = "0.1.0"

__all__ = [
    "analyze",
    "correlation_matrix",
    "list_sheets",
    "parse_rows",
    "serialize_csv",
    "serialize_workbook",
    "CorrelationResult",
    "DatasetAnalysis",
]
