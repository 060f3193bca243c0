"""
Cell value parsing shared by type inference, cleaning and correlation.

Each parser returns a ParsedValue carrying the parsed value and a format
label, so callers can tell which format a cell was written in.
"""
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Optional

from datalens.config import get_settings


CURRENCY_SYMBOLS = "$€£¥₹"

_NUMBER_PATTERN = re.compile(r"^[+-]?(?:\d{1,3}(?:,\d{3})+|\d+)?(?:\.\d*)?(?:[eE][+-]?\d+)?$")
_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_DATE_SEPARATORS = re.compile(r"[-/., ]")

# (strptime pattern, date only); first match wins
DATETIME_FORMATS: tuple[tuple[str, bool], ...] = (
    ("%Y-%m-%d", True),
    ("%Y/%m/%d", True),
    ("%m/%d/%Y", True),
    ("%d/%m/%Y", True),
    ("%m-%d-%Y", True),
    ("%d-%m-%Y", True),
    ("%d.%m.%Y", True),
    ("%m/%d/%y", True),
    ("%b %d, %Y", True),
    ("%B %d, %Y", True),
    ("%b %d %Y", True),
    ("%B %d %Y", True),
    ("%d %b %Y", True),
    ("%d %B %Y", True),
    ("%Y-%m-%d %H:%M:%S", False),
    ("%Y/%m/%d %H:%M:%S", False),
    ("%Y/%m/%d %H:%M", False),
    ("%m/%d/%Y %H:%M:%S", False),
    ("%m/%d/%Y %H:%M", False),
    ("%d/%m/%Y %H:%M:%S", False),
    ("%d/%m/%Y %H:%M", False),
)


@dataclass(frozen=True)
class ParsedValue:
    """A successfully parsed cell and the format it was written in"""
    value: Any
    fmt: str
    date_only: bool = False


def is_missing(value: Any, null_values: Optional[frozenset[str]] = None) -> bool:
    """True for None, NaN, blank strings and configured null tokens"""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return True
        tokens = null_values if null_values is not None else get_settings().null_tokens
        return text in tokens
    return False


def parse_number(value: Any) -> Optional[ParsedValue]:
    """
    Parse a number, tolerating currency symbols, thousands separators,
    percent signs and accounting parentheses.

    Percentages keep their written magnitude ("50%" -> 50.0). Booleans and
    non-finite values are not numbers.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return ParsedValue(number, "plain") if math.isfinite(number) else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    negative = False
    if len(text) > 2 and text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1].strip()

    sign = ""
    if text[:1] in ("+", "-") and text[1:2] and text[1] in CURRENCY_SYMBOLS:
        sign, text = text[0], text[1:]

    currency = ""
    if text[:1] and text[0] in CURRENCY_SYMBOLS:
        currency, text = text[0], text[1:].strip()
    elif text[-1:] and text[-1] in CURRENCY_SYMBOLS:
        currency, text = text[-1], text[:-1].strip()

    percent = text.endswith("%")
    if percent:
        text = text[:-1].strip()

    if not text or not any(ch.isdigit() for ch in text) or not _NUMBER_PATTERN.match(text):
        return None
    try:
        number = float(sign + text.replace(",", ""))
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    if negative:
        number = -abs(number)

    if currency:
        fmt = f"currency:{currency}"
    elif percent:
        fmt = "percent"
    else:
        fmt = "plain"
    return ParsedValue(number, fmt)


def parse_datetime(value: Any) -> Optional[ParsedValue]:
    """Parse a date/time written in one of the supported formats"""
    if isinstance(value, datetime):
        midnight = value.time() == time(0, 0) and value.tzinfo is None
        return ParsedValue(value, "native", date_only=midnight)
    if isinstance(value, date):
        return ParsedValue(datetime.combine(value, time(0, 0)), "native", date_only=True)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if len(text) < 6 or len(text) > 40 or not _DATE_SEPARATORS.search(text):
        return None
    if not any(ch.isdigit() for ch in text):
        return None

    if _ISO_PREFIX.match(text):
        candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
        try:
            parsed = datetime.fromisoformat(candidate)
        except ValueError:
            return None
        return ParsedValue(parsed, "iso8601", date_only=len(text) == 10)

    for pattern, date_only in DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(text, pattern)
        except ValueError:
            continue
        return ParsedValue(parsed, pattern, date_only=date_only)
    return None


def to_iso(parsed: ParsedValue) -> str:
    """Canonical ISO 8601 text for a parsed date/time"""
    moment: datetime = parsed.value
    if parsed.date_only:
        return moment.date().isoformat()
    return moment.isoformat()


def iso_sort_key(text: str) -> datetime:
    """Comparable naive-UTC datetime for a canonical ISO string"""
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def as_text(value: Any) -> Optional[str]:
    """Render a scalar as trimmed text; integral floats lose their '.0'"""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        return repr(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()
