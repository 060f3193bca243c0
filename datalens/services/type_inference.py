"""
Column type inference.

Each column gets exactly one ColumnType, decided from a bounded head
sample of its raw values. Checks run in priority order: datetime, numeric,
identifier, categorical, then free text. An all-missing column is text.
"""
import re
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from datalens.config import Settings, get_settings
from datalens.models.analysis import ColumnType, Row
from datalens.services.parsing import as_text, is_missing, parse_datetime, parse_number


_UUID = re.compile(r"^[0-9a-fA-F]{8}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{4}-?[0-9a-fA-F]{12}$")
_PREFIXED_CODE = re.compile(r"^[A-Za-z]{1,6}[-_#]?\d{2,}$")
_HEX_HASH = re.compile(r"^[0-9a-fA-F]{16,}$")
# "id" as a whole word: user_id, user-id, USER_ID, userId, orderID; not paid or COVID
_ID_NAME = re.compile(r"^(?:id|Id|ID|index|key|.*[_\s-](?:id|Id|ID)|.*[a-z0-9](?:Id|ID))$")
_MIN_SEQUENCE = 5


def looks_like_identifier(text: str) -> bool:
    """UUIDs, prefixed codes (ORD-0012) and hex hashes"""
    return bool(_UUID.match(text) or _PREFIXED_CODE.match(text) or _HEX_HASH.match(text))


def is_identifier_name(name: str) -> bool:
    return bool(_ID_NAME.match(name.strip()))


def _sequential_integers(numbers: Sequence[float]) -> bool:
    """Row counter: 0..n-1 or 1..n in row order"""
    if len(numbers) < _MIN_SEQUENCE or numbers[0] not in (0, 1):
        return False
    return all(n == numbers[0] + i for i, n in enumerate(numbers))


def _unique_integers(numbers: Sequence[float]) -> bool:
    return all(n.is_integer() for n in numbers) and len(set(numbers)) == len(numbers)


def infer_column_type(name: str, values: Sequence[Any], settings: Optional[Settings] = None) -> ColumnType:
    """Classify one column from its sampled raw values"""
    settings = settings or get_settings()
    present = [v for v in values if not is_missing(v, settings.null_tokens)]
    if not present:
        return ColumnType.TEXT

    threshold = settings.TYPE_MATCH_THRESHOLD
    total = len(present)

    dates = sum(1 for v in present if parse_datetime(v) is not None)
    if dates / total >= threshold:
        return ColumnType.DATETIME

    parsed = [parse_number(v) for v in present]
    numbers = [p.value for p in parsed if p is not None]
    if len(numbers) / total >= threshold:
        if len(numbers) == total:
            if is_identifier_name(name) and _unique_integers(numbers):
                return ColumnType.ID
            if _sequential_integers(numbers):
                return ColumnType.ID
        return ColumnType.NUMERIC

    texts = [as_text(v) for v in present]
    distinct = len(set(texts))
    unique_ratio = distinct / total

    if unique_ratio > settings.ID_UNIQUE_RATIO:
        id_like = sum(1 for t in texts if looks_like_identifier(t))
        if id_like / total >= threshold:
            return ColumnType.ID

    avg_length = sum(len(t) for t in texts) / total
    if unique_ratio <= settings.CATEGORICAL_MAX_UNIQUE_RATIO:
        return ColumnType.CATEGORICAL
    if distinct <= settings.CATEGORICAL_MAX_DISTINCT and avg_length <= settings.TEXT_MIN_AVG_LENGTH:
        return ColumnType.CATEGORICAL
    return ColumnType.TEXT


def infer_column_types(
    rows: Sequence[Row],
    columns: Sequence[str],
    settings: Optional[Settings] = None,
) -> Dict[str, ColumnType]:
    """
    Assign a ColumnType to every column, in column order.

    Only the first ``INFERENCE_SAMPLE_SIZE`` rows are examined, so the
    result is the same for the same input regardless of dataset size.
    """
    settings = settings or get_settings()
    sample: List[Row] = list(rows[:settings.INFERENCE_SAMPLE_SIZE])

    types: Dict[str, ColumnType] = {}
    for name in columns:
        types[name] = infer_column_type(name, [row.get(name) for row in sample], settings)
        logger.debug(f"Column '{name}' inferred as {types[name].value}")

    logger.info(f"Inferred types for {len(columns)} columns from {len(sample)} sampled rows")
    return types
