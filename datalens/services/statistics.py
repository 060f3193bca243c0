"""
Column statistics helpers used by the profiler and the cleaner.

All helpers are deterministic: frequency ties keep first-seen order and
quartiles use linear interpolation on rank.
"""
import math
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import polars as pl

from datalens.config import Settings, get_settings
from datalens.models.analysis import Cardinality, ColumnStats, ColumnType, NullPattern


_WHITESPACE = re.compile(r"\s+")


def describe_numeric(series: pl.Series, settings: Optional[Settings] = None) -> Optional[ColumnStats]:
    """
    Descriptive statistics for a numeric column.

    Returns None when the column has no values. Outliers are the values
    outside ``[q1 - k*iqr, q3 + k*iqr]``; they are counted, not removed.
    """
    settings = settings or get_settings()
    values = series.drop_nulls().cast(pl.Float64)
    if values.len() == 0:
        return None

    low = float(values.min())
    high = float(values.max())
    quartiles = [
        float(values.quantile(q, interpolation="linear"))
        for q in (0.25, 0.5, 0.75)
    ]
    # Keep min <= q1 <= median <= q3 <= max under float rounding
    q1, median, q3 = sorted(min(max(q, low), high) for q in quartiles)
    iqr = q3 - q1

    k = settings.OUTLIER_IQR_MULTIPLIER
    lower, upper = q1 - k * iqr, q3 + k * iqr
    outliers = int(((values < lower) | (values > upper)).sum())

    return ColumnStats(
        min=low,
        max=high,
        mean=min(max(float(values.mean()), low), high),
        median=median,
        q1=q1,
        q3=q3,
        iqr=iqr,
        outlier_count=outliers,
    )


def value_frequencies(series: pl.Series, limit: Optional[int] = None) -> List[Tuple[Any, int]]:
    """(value, count) pairs sorted by count descending, ties by first appearance"""
    frame = series.drop_nulls().to_frame("value")
    counts = (
        frame.group_by("value", maintain_order=True)
        .agg(pl.len().alias("count"))
        .sort("count", descending=True, maintain_order=True)
    )
    if limit is not None:
        counts = counts.head(limit)
    return list(counts.iter_rows())


def classify_cardinality(unique_count: int, row_count: int, settings: Optional[Settings] = None) -> Cardinality:
    settings = settings or get_settings()
    if unique_count <= 1:
        return Cardinality.CONSTANT
    if unique_count >= row_count:
        return Cardinality.UNIQUE

    ratio = unique_count / row_count
    if ratio >= settings.CARDINALITY_MEDIUM_RATIO:
        return Cardinality.HIGH
    if ratio >= settings.CARDINALITY_LOW_RATIO:
        return Cardinality.MEDIUM
    return Cardinality.LOW


def classify_null_pattern(missing: Sequence[bool], settings: Optional[Settings] = None) -> NullPattern:
    """
    Classify where the missing cells of a column sit.

    - ``none``: no gaps
    - ``leading``/``trailing``: one contiguous block of 2+ gaps at the start
      or end, or gaps whose mean position is significantly early or late
    - ``periodic``: gaps at a constant stride of 2 or more
    - ``random``: anything else, including a column that is entirely missing

    The significance test compares the mean normalised gap position with
    0.5, the expectation for uniformly scattered gaps, using the standard
    error ``sqrt(1 / (12 m))``.
    """
    settings = settings or get_settings()
    n = len(missing)
    positions = [i for i, flag in enumerate(missing) if flag]
    m = len(positions)

    if m == 0:
        return NullPattern.NONE
    if m == n:
        return NullPattern.RANDOM

    if m >= 2:
        if positions[-1] == m - 1:
            return NullPattern.LEADING
        if positions[0] == n - m:
            return NullPattern.TRAILING

    if m >= settings.NULL_PATTERN_MIN_PERIODIC:
        strides = {b - a for a, b in zip(positions, positions[1:])}
        if len(strides) == 1 and strides.pop() >= 2:
            return NullPattern.PERIODIC

    mean_position = sum((i + 0.5) / n for i in positions) / m
    z = (mean_position - 0.5) / math.sqrt(1 / (12 * m))
    if z <= -settings.NULL_PATTERN_Z_THRESHOLD:
        return NullPattern.LEADING
    if z >= settings.NULL_PATTERN_Z_THRESHOLD:
        return NullPattern.TRAILING
    return NullPattern.RANDOM


def _spelling_key(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip().casefold()


def count_spelling_variants(series: pl.Series) -> int:
    """Values whose spelling differs only by case/whitespace from a more common one"""
    dominant: Dict[str, str] = {}
    variants = 0
    for value, count in value_frequencies(series):
        key = _spelling_key(str(value))
        if key in dominant:
            variants += count
        else:
            dominant[key] = value
    return variants


def count_inconsistent_formats(
    column_type: ColumnType,
    series: pl.Series,
    format_counts: Dict[str, int],
    coercion_failures: int = 0,
) -> int:
    """
    Values written differently from the column's dominant format.

    Numeric and datetime columns count values parsed under a non-dominant
    format plus values that failed to parse at all. Categorical and text
    columns count spelling variants. Id columns are never flagged.
    """
    if column_type in (ColumnType.NUMERIC, ColumnType.DATETIME):
        parsed = sum(format_counts.values())
        dominant = max(format_counts.values(), default=0)
        return coercion_failures + (parsed - dominant)
    if column_type in (ColumnType.CATEGORICAL, ColumnType.TEXT):
        return count_spelling_variants(series)
    return 0
