"""
Data cleaning for DataLens.

Cleaning runs in two passes over the typed columns:

1. Row pass - trim strings, coerce numeric cells to floats and datetime
   cells to ISO 8601 text. Cells that do not parse become missing and are
   counted per column; nothing is raised for bad data.
2. Dataset pass - predefined, parameterized operations executed on a
   Polars DataFrame: drop exact duplicate rows (first occurrence wins),
   then fill numeric gaps with the median and categorical gaps with the
   mode. Datetime, text and id gaps are left missing.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

import polars as pl
from loguru import logger
from pydantic import BaseModel, field_validator

from datalens.config import Settings, get_settings
from datalens.models.analysis import ColumnType, Row
from datalens.services.parsing import as_text, is_missing, parse_datetime, parse_number, to_iso
from datalens.services.statistics import value_frequencies


class OperationType(str, Enum):
    """Available cleaning operation types."""
    FILL_MISSING = "fill_missing"
    DROP_DUPLICATES = "drop_duplicates"


class FillStrategy(str, Enum):
    """Strategies for filling missing values."""
    MEDIAN = "median"
    MODE = "mode"


class CleaningOperation(BaseModel):
    """Base model for a cleaning operation."""
    operation: OperationType
    column: Optional[str] = None
    columns: Optional[List[str]] = None
    description: str
    affected: int = 0


class FillMissingOperation(CleaningOperation):
    """Fill missing values in a column."""
    operation: OperationType = OperationType.FILL_MISSING
    column: str
    strategy: FillStrategy


class DropDuplicatesOperation(CleaningOperation):
    """Remove duplicate rows."""
    operation: OperationType = OperationType.DROP_DUPLICATES
    columns: Optional[List[str]] = None  # Subset of columns to check
    keep: str = "first"  # "first", "last", or "none"

    @field_validator("keep")
    @classmethod
    def validate_keep(cls, v):
        if v not in ("first", "last", "none"):
            raise ValueError("keep must be 'first', 'last' or 'none'")
        return v


# Operation execution functions

class CleaningExecutor:
    """Executes cleaning operations on Polars DataFrames."""

    @staticmethod
    def execute(df: pl.DataFrame, operation: CleaningOperation) -> pl.DataFrame:
        """Execute a cleaning operation on a DataFrame."""

        if operation.operation == OperationType.FILL_MISSING:
            return CleaningExecutor._fill_missing(df, operation)
        elif operation.operation == OperationType.DROP_DUPLICATES:
            return CleaningExecutor._drop_duplicates(df, operation)
        else:
            raise ValueError(f"Unknown operation: {operation.operation}")

    @staticmethod
    def _fill_missing(df: pl.DataFrame, op: FillMissingOperation) -> pl.DataFrame:
        """Fill missing values."""
        if op.column not in df.columns:
            raise ValueError(f"Column '{op.column}' not found")

        col = pl.col(op.column)

        if op.strategy == FillStrategy.MEDIAN:
            return df.with_columns(col.fill_null(col.median()))
        elif op.strategy == FillStrategy.MODE:
            frequencies = value_frequencies(df[op.column])
            if not frequencies:
                return df
            return df.with_columns(col.fill_null(pl.lit(frequencies[0][0], dtype=df.schema[op.column])))

        return df

    @staticmethod
    def _drop_duplicates(df: pl.DataFrame, op: DropDuplicatesOperation) -> pl.DataFrame:
        """Remove duplicate rows, keeping row order."""
        if op.columns:
            return df.unique(subset=op.columns, keep=op.keep, maintain_order=True)
        return df.unique(keep=op.keep, maintain_order=True)


@dataclass
class CleaningResult:
    """Typed frames and counters produced by ``clean_dataset``"""
    columns: List[str]
    types: Dict[str, ColumnType]
    deduplicated: pl.DataFrame  # after de-duplication, before imputation
    cleaned: pl.DataFrame
    raw_row_count: int
    duplicates_removed: int = 0
    missing_filled: int = 0
    coercion_failures: Dict[str, int] = field(default_factory=dict)
    format_counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    operations: List[CleaningOperation] = field(default_factory=list)

    @property
    def cleaned_rows(self) -> List[Row]:
        return self.cleaned.to_dicts()


def _coerce_column(
    rows: Sequence[Row],
    name: str,
    column_type: ColumnType,
    null_tokens: frozenset,
) -> tuple:
    """Normalize one column's cells; returns (values, failures, format counts)"""
    values = []
    failures = 0
    formats: Counter = Counter()

    for row in rows:
        raw = row.get(name)
        if is_missing(raw, null_tokens):
            values.append(None)
            continue

        if column_type == ColumnType.NUMERIC:
            parsed = parse_number(raw)
            if parsed is None:
                failures += 1
                values.append(None)
            else:
                formats[parsed.fmt] += 1
                values.append(parsed.value)
        elif column_type == ColumnType.DATETIME:
            parsed = parse_datetime(raw)
            if parsed is None:
                failures += 1
                values.append(None)
            else:
                formats[parsed.fmt] += 1
                values.append(to_iso(parsed))
        else:
            values.append(as_text(raw))

    return values, failures, dict(formats)


def build_frame(
    rows: Sequence[Row],
    columns: Sequence[str],
    types: Dict[str, ColumnType],
    settings: Optional[Settings] = None,
) -> tuple:
    """
    Row pass: typed Polars frame plus per-column coercion counters.

    Numeric columns become Float64, every other column Utf8.
    """
    settings = settings or get_settings()
    data: Dict[str, list] = {}
    schema: Dict[str, pl.DataType] = {}
    failures: Dict[str, int] = {}
    format_counts: Dict[str, Dict[str, int]] = {}

    for name in columns:
        column_type = types[name]
        values, failed, formats = _coerce_column(rows, name, column_type, settings.null_tokens)
        data[name] = values
        schema[name] = pl.Float64 if column_type == ColumnType.NUMERIC else pl.Utf8
        failures[name] = failed
        format_counts[name] = formats
        if failed:
            logger.debug(f"Column '{name}': {failed} values failed {column_type.value} coercion")

    return pl.DataFrame(data, schema=schema), failures, format_counts


def clean_dataset(
    rows: Sequence[Row],
    columns: Sequence[str],
    types: Dict[str, ColumnType],
    settings: Optional[Settings] = None,
) -> CleaningResult:
    """
    Clean typed rows into a new frame.

    Never raises for data-quality reasons: unparseable cells become missing,
    and every anomaly is reported as a counter on the result.
    """
    settings = settings or get_settings()
    columns = list(columns)
    df, failures, format_counts = build_frame(rows, columns, types, settings)
    raw_row_count = len(rows)
    operations: List[CleaningOperation] = []

    # Dataset pass 1: exact duplicates
    dedupe = DropDuplicatesOperation(description="Remove exact duplicate rows", keep="first")
    deduplicated = CleaningExecutor.execute(df, dedupe) if columns else df
    duplicates_removed = raw_row_count - deduplicated.height
    operations.append(dedupe.model_copy(update={"affected": duplicates_removed}))

    # Dataset pass 2: imputation
    cleaned = deduplicated
    missing_filled = 0
    for name in columns:
        null_count = deduplicated[name].null_count()
        if null_count == 0 or null_count == deduplicated.height:
            continue

        if types[name] == ColumnType.NUMERIC:
            strategy = FillStrategy.MEDIAN
        elif types[name] == ColumnType.CATEGORICAL:
            strategy = FillStrategy.MODE
        else:
            continue

        fill = FillMissingOperation(
            column=name,
            strategy=strategy,
            description=f"Fill missing '{name}' with the {strategy.value}",
            affected=null_count,
        )
        cleaned = CleaningExecutor.execute(cleaned, fill)
        operations.append(fill)
        missing_filled += null_count

    logger.info(
        f"Cleaned {raw_row_count:,} rows: {duplicates_removed} duplicates removed, "
        f"{missing_filled} missing values filled"
    )

    return CleaningResult(
        columns=columns,
        types=dict(types),
        deduplicated=deduplicated,
        cleaned=cleaned,
        raw_row_count=raw_row_count,
        duplicates_removed=duplicates_removed,
        missing_filled=missing_filled,
        coercion_failures=failures,
        format_counts=format_counts,
        operations=operations,
    )
