"""
Services package
"""
from datalens.services.analyzer import analyze, analyze_records, analyze_source
from datalens.services.cleaning_operations import CleaningExecutor, CleaningResult, clean_dataset
from datalens.services.connectors import ApiConnectorConfig, fetch_records
from datalens.services.correlation import correlation_matrix
from datalens.services.data_formats import (
    DataFormat,
    DataReader,
    DataWriter,
    ParsedDataset,
    ReadOptions,
    WriteOptions,
    list_sheets,
    parse_rows,
    records_to_dataset,
    serialize_csv,
    serialize_workbook,
)
from datalens.services.insights import generate_insights
from datalens.services.profiler import profile_columns
from datalens.services.quality import QualityBreakdown, QualitySignals, score_quality
from datalens.services.type_inference import infer_column_types

__all__ = [
    "analyze",
    "analyze_records",
    "analyze_source",
    "CleaningExecutor",
    "CleaningResult",
    "clean_dataset",
    "ApiConnectorConfig",
    "fetch_records",
    "correlation_matrix",
    "DataFormat",
    "DataReader",
    "DataWriter",
    "ParsedDataset",
    "ReadOptions",
    "WriteOptions",
    "list_sheets",
    "parse_rows",
    "records_to_dataset",
    "serialize_csv",
    "serialize_workbook",
    "generate_insights",
    "profile_columns",
    "QualityBreakdown",
    "QualitySignals",
    "score_quality",
    "infer_column_types",
]
