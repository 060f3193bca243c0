"""
Column profiler.

Builds one ColumnInfo variant per column from the de-duplicated frame
(before imputation, so filled values do not skew the statistics).
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

import polars as pl
from loguru import logger

from datalens.config import Settings, get_settings
from datalens.models.analysis import (
    CategoricalColumnInfo,
    ColumnInfo,
    ColumnType,
    DateRange,
    DatetimeColumnInfo,
    IdColumnInfo,
    NumericColumnInfo,
    TextColumnInfo,
    TopValue,
)
from datalens.services.cleaning_operations import CleaningResult
from datalens.services.parsing import as_text, iso_sort_key
from datalens.services.statistics import (
    classify_cardinality,
    classify_null_pattern,
    count_inconsistent_formats,
    describe_numeric,
    value_frequencies,
)


def date_range_of(series: pl.Series) -> Optional[DateRange]:
    """Earliest and latest ISO timestamp in a datetime column"""
    values = series.drop_nulls().to_list()
    if not values:
        return None
    return DateRange(min=min(values, key=iso_sort_key), max=max(values, key=iso_sort_key))


def profile_column(
    name: str,
    column_type: ColumnType,
    series: pl.Series,
    format_counts: Optional[Dict[str, int]] = None,
    coercion_failures: int = 0,
    settings: Optional[Settings] = None,
) -> ColumnInfo:
    settings = settings or get_settings()
    row_count = series.len()
    missing_count = series.null_count()
    unique_count = series.drop_nulls().n_unique()

    base = dict(
        name=name,
        unique_count=unique_count,
        missing_count=missing_count,
        missing_percent=round(missing_count / row_count * 100, 2) if row_count else 0.0,
        cardinality=classify_cardinality(unique_count, row_count, settings),
        null_pattern=classify_null_pattern(series.is_null().to_list(), settings),
        inconsistent_formats=count_inconsistent_formats(
            column_type, series, format_counts or {}, coercion_failures
        ),
    )

    if column_type == ColumnType.NUMERIC:
        stats = describe_numeric(series, settings)
        if stats is not None:
            return NumericColumnInfo(stats=stats, **base)
        logger.warning(f"Numeric column '{name}' has no values, reporting it as text")
        return TextColumnInfo(**base)

    if column_type == ColumnType.CATEGORICAL:
        top_values = [
            TopValue(value=as_text(value), count=count)
            for value, count in value_frequencies(series, limit=settings.TOP_K_VALUES)
        ]
        return CategoricalColumnInfo(top_values=top_values, **base)

    if column_type == ColumnType.DATETIME:
        return DatetimeColumnInfo(date_range=date_range_of(series), **base)

    if column_type == ColumnType.ID:
        return IdColumnInfo(**base)

    return TextColumnInfo(**base)


def profile_columns(result: CleaningResult, settings: Optional[Settings] = None) -> List[ColumnInfo]:
    """
    Profile every column of a cleaning result, in column order.

    With ``PROFILER_MAX_WORKERS > 1`` columns are profiled in a thread pool;
    the output order is still the column order.
    """
    settings = settings or get_settings()
    frame = result.deduplicated

    def run(name: str) -> ColumnInfo:
        return profile_column(
            name,
            result.types[name],
            frame.get_column(name),
            result.format_counts.get(name),
            result.coercion_failures.get(name, 0),
            settings,
        )

    workers = settings.PROFILER_MAX_WORKERS
    if workers > 1 and len(result.columns) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            profiles = list(pool.map(run, result.columns))
    else:
        profiles = [run(name) for name in result.columns]

    logger.info(f"Profiled {len(profiles)} columns over {frame.height:,} rows")
    return profiles
