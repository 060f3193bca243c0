"""
Analysis models package
"""
from datalens.models.analysis import (
    Row,
    ColumnType,
    Cardinality,
    NullPattern,
    ColumnStats,
    TopValue,
    DateRange,
    ColumnInfo,
    ColumnInfoBase,
    NumericColumnInfo,
    CategoricalColumnInfo,
    DatetimeColumnInfo,
    TextColumnInfo,
    IdColumnInfo,
    DatasetAnalysis,
    CorrelationResult,
)

__all__ = [
    "Row", "ColumnType", "Cardinality", "NullPattern",
    "ColumnStats", "TopValue", "DateRange",
    "ColumnInfo", "ColumnInfoBase",
    "NumericColumnInfo", "CategoricalColumnInfo", "DatetimeColumnInfo", "TextColumnInfo", "IdColumnInfo",
    "DatasetAnalysis", "CorrelationResult",
]
