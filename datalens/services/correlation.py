"""
Pearson correlation over a chosen set of numeric columns.

Pure and independent of the analysis pipeline: it takes any rows (raw or
cleaned) and coerces values itself. Each pair uses only the rows where
both columns have a number. Degenerate pairs (fewer than two shared rows,
or zero variance) get 0.
"""
import math
from typing import List, Optional, Sequence

import polars as pl
from loguru import logger

from datalens.models.analysis import CorrelationResult, Row
from datalens.services.parsing import parse_number


def _numeric_frame(rows: Sequence[Row], columns: Sequence[str]) -> pl.DataFrame:
    data = {}
    for name in columns:
        values: List[Optional[float]] = []
        for row in rows:
            parsed = parse_number(row.get(name))
            values.append(parsed.value if parsed is not None else None)
        data[name] = values
    return pl.DataFrame(data, schema={name: pl.Float64 for name in columns})


def _is_constant(series: pl.Series) -> bool:
    """True when every value is equal"""
    return series.n_unique() <= 1


def pearson(frame: pl.DataFrame, left: str, right: str) -> float:
    """Pearson r over rows where both columns are present"""
    pairs = frame.select(left, right).drop_nulls() if left != right else frame.select(left).drop_nulls()
    if pairs.height < 2:
        return 0.0

    if left == right:
        return 0.0 if _is_constant(pairs.get_column(left)) else 1.0

    if _is_constant(pairs.get_column(left)) or _is_constant(pairs.get_column(right)):
        return 0.0

    r = pairs.select(pl.corr(left, right)).item()
    if r is None or math.isnan(r):
        return 0.0
    return min(max(float(r), -1.0), 1.0)


def correlation_matrix(rows: Sequence[Row], columns: Sequence[str]) -> CorrelationResult:
    """
    Symmetric Pearson matrix for ``columns`` over ``rows``.

    The diagonal is 1 for every column with non-zero variance and 0 for a
    constant column.
    """
    columns = list(dict.fromkeys(columns))
    frame = _numeric_frame(rows, columns)
    size = len(columns)
    matrix = [[0.0] * size for _ in range(size)]

    for i in range(size):
        for j in range(i, size):
            value = pearson(frame, columns[i], columns[j])
            matrix[i][j] = matrix[j][i] = value

    logger.debug(f"Computed {size}x{size} correlation matrix over {len(rows):,} rows")
    return CorrelationResult(columns=columns, matrix=matrix)
