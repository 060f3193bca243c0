"""
Analysis pipeline.

Ingested rows flow strictly forward through type inference, cleaning,
profiling and quality scoring into one immutable DatasetAnalysis. Each
call is independent: no stage keeps state between calls.
"""
from typing import Any, Optional, Sequence

from loguru import logger

from datalens.config import Settings, get_settings
from datalens.models.analysis import ColumnType, DatasetAnalysis, DateRange, Row
from datalens.services.cleaning_operations import clean_dataset
from datalens.services.data_formats import DataReader, ReadOptions, columns_of, records_to_dataset
from datalens.services.profiler import profile_columns
from datalens.services.quality import QualitySignals, score_quality
from datalens.services.type_inference import infer_column_types


def analyze(
    rows: Sequence[Row],
    *,
    columns: Optional[Sequence[str]] = None,
    parsing_errors: int = 0,
    settings: Optional[Settings] = None,
) -> DatasetAnalysis:
    """
    Run the full pipeline over already-ingested rows.

    ``columns`` fixes the column order; when omitted it is the union of row
    keys in first-seen order. ``parsing_errors`` carries the ingestor's count
    of skipped rows into the quality score.
    """
    settings = settings or get_settings()
    rows = list(rows)
    columns = list(columns) if columns is not None else columns_of(rows)
    logger.info(f"Analyzing {len(rows):,} rows × {len(columns)} columns")

    types = infer_column_types(rows, columns, settings)
    result = clean_dataset(rows, columns, types, settings)
    column_info = profile_columns(result, settings)

    frame = result.deduplicated
    total_cells = frame.height * len(columns)
    missing_cells = sum(frame.get_column(name).null_count() for name in columns)
    missing_percent = round(missing_cells / total_cells * 100, 2) if total_cells else 0.0

    signals = QualitySignals.collect(
        column_info,
        missing_percent=missing_percent,
        raw_row_count=result.raw_row_count,
        duplicates_removed=result.duplicates_removed,
        parsing_errors=parsing_errors,
        settings=settings,
    )
    quality = score_quality(signals, settings)

    date_range: Optional[DateRange] = None
    for info in column_info:
        if info.type == ColumnType.DATETIME.value and info.date_range is not None:
            date_range = info.date_range
            break

    analysis = DatasetAnalysis(
        rows=result.cleaned.height,
        columns=len(columns),
        column_names=columns,
        raw_row_count=result.raw_row_count,
        duplicates_removed=result.duplicates_removed,
        missing_filled=result.missing_filled,
        missing_percent=missing_percent,
        quality_score=quality.score,
        parsing_errors=parsing_errors,
        date_range=date_range,
        cleaned_data=result.cleaned_rows,
        column_info=column_info,
    )
    logger.info(
        f"Analysis complete: {analysis.rows:,} rows, quality score {analysis.quality_score}"
    )
    return analysis


def analyze_source(
    content: bytes,
    filename: str,
    sheet_index: int = 0,
    settings: Optional[Settings] = None,
) -> DatasetAnalysis:
    """Ingest a file's bytes and analyze the result"""
    settings = settings or get_settings()
    options = ReadOptions(
        sheet_index=sheet_index,
        encoding=settings.CSV_ENCODING,
        delimiter_sample_bytes=settings.DELIMITER_SAMPLE_BYTES,
    )
    dataset = DataReader.read_bytes(content, filename, options)
    return analyze(
        dataset.rows,
        columns=dataset.columns,
        parsing_errors=dataset.parsing_errors,
        settings=settings,
    )


def analyze_records(records: Sequence[Any], settings: Optional[Settings] = None) -> DatasetAnalysis:
    """
    Analyze a pre-parsed JSON array.

    Records go through the JSON ingestor first, so nested objects are
    flattened to dotted keys and non-object elements count as parsing errors.
    """
    dataset = records_to_dataset(records)
    return analyze(
        dataset.rows,
        columns=dataset.columns,
        parsing_errors=dataset.parsing_errors,
        settings=settings,
    )
