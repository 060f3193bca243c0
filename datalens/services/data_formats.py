"""
DataLens Data Format Handlers

Decodes uploaded or fetched sources into row records for analysis:

- CSV / TSV (delimited text, delimiter auto-detected)
- Excel workbooks (.xlsx, .xlsm - any sheet)
- JSON (array of records, or an object wrapping one) and JSON Lines

Values are kept raw (strings, numbers, booleans, datetimes); typing is the
type inferencer's job. Rows that cannot be decoded against the header are
skipped and counted in ``parsing_errors``. Only a source that cannot be
opened at all raises ``SourceUnreadableError``.

Also writes cleaned rows back out as CSV, Excel or JSON.
"""
import csv
import io
import json
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Union

import polars as pl
from loguru import logger
from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils.exceptions import InvalidFileException

from datalens.exceptions import SourceUnreadableError, UnsupportedFormatError, ValidationError
from datalens.models.analysis import Row
from datalens.services.parsing import as_text


class DataFormat(str, Enum):
    """Supported data formats"""
    CSV = "csv"
    TSV = "tsv"
    EXCEL = "excel"
    JSON = "json"
    JSON_LINES = "jsonl"


# File extension to format mapping
EXTENSION_MAP = {
    ".csv": DataFormat.CSV,
    ".tsv": DataFormat.TSV,
    ".txt": DataFormat.CSV,  # Assume CSV for .txt
    ".xlsx": DataFormat.EXCEL,
    ".xlsm": DataFormat.EXCEL,
    ".json": DataFormat.JSON,
    ".jsonl": DataFormat.JSON_LINES,
    ".ndjson": DataFormat.JSON_LINES,
}

_ZIP_MAGIC = b"PK\x03\x04"
WORKBOOK_SHEET_TITLE = "Cleaned Data"


@dataclass
class ReadOptions:
    """Options for reading data sources"""
    # CSV options
    delimiter: Optional[str] = None  # Auto-detect if None
    encoding: str = "utf-8-sig"
    delimiter_sample_bytes: int = 8192

    # Workbook options
    sheet_index: int = 0
    sheet_name: Optional[str] = None  # Takes precedence over sheet_index

    # Sampling
    sample_rows: Optional[int] = None  # Read only N rows (previews)


@dataclass
class WriteOptions:
    """Options for writing data files"""
    delimiter: str = ","
    include_header: bool = True
    sheet_title: str = WORKBOOK_SHEET_TITLE


@dataclass
class ParsedDataset:
    """Raw rows decoded from a source, before any typing or cleaning"""
    columns: List[str]
    rows: List[Row]
    parsing_errors: int = 0
    source_format: Optional[DataFormat] = None
    sheet_name: Optional[str] = None
    sheet_names: List[str] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


class _HeaderNormalizer:
    """Normalizes and deduplicates column headers."""

    def __init__(self) -> None:
        self._base_counts: Dict[str, int] = {}
        self._used: Set[str] = set()

    def _clean(self, raw: Any, index: int) -> str:
        text = "" if raw is None else str(raw)
        text = text.lstrip("﻿").strip()
        if not text:
            return f"column_{index + 1}"
        return text

    def _allocate(self, base: str) -> str:
        count = self._base_counts.get(base, 0)
        candidate = base if count == 0 else f"{base}_{count + 1}"
        while candidate in self._used:
            count += 1
            candidate = f"{base}_{count + 1}"
        self._base_counts[base] = count + 1
        self._used.add(candidate)
        return candidate

    def normalize(self, fieldnames: Sequence[Any]) -> List[str]:
        return [self._allocate(self._clean(name, index)) for index, name in enumerate(fieldnames)]


def flatten_record(obj: Dict[str, Any], prefix: str = "") -> Row:
    """
    Flatten nested objects to dotted keys.

    Arrays of objects become JSON text, arrays of scalars a comma-joined
    string.
    """
    result: Row = {}
    for key, value in obj.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            result.update(flatten_record(value, name))
        elif isinstance(value, list):
            if value and isinstance(value[0], (dict, list)):
                result[name] = json.dumps(value, default=str)
            else:
                result[name] = ", ".join("" if v is None else str(v) for v in value)
        else:
            result[name] = value
    return result


def records_to_dataset(records: Iterable[Any], source_format: Optional[DataFormat] = DataFormat.JSON) -> ParsedDataset:
    """
    Build a dataset from pre-parsed JSON records.

    Column order is the union of keys in first-seen order. Elements that
    are not objects are skipped and counted as parsing errors.
    """
    columns: List[str] = []
    seen: Set[str] = set()
    flat_rows: List[Row] = []
    parsing_errors = 0

    for record in records:
        if not isinstance(record, dict):
            parsing_errors += 1
            continue
        flat = flatten_record(record)
        for key in flat:
            if key not in seen:
                seen.add(key)
                columns.append(key)
        flat_rows.append(flat)

    rows = [{name: flat.get(name) for name in columns} for flat in flat_rows]
    if parsing_errors:
        logger.warning(f"Skipped {parsing_errors} non-object JSON records")
    return ParsedDataset(columns=columns, rows=rows, parsing_errors=parsing_errors, source_format=source_format)


class DataReader:
    """
    Universal data source reader with format auto-detection.

    Works on in-memory bytes (uploads, fetched payloads) or files on disk.
    """

    @staticmethod
    def detect_format(filename: Union[str, Path]) -> DataFormat:
        """Detect file format from extension"""
        ext = Path(filename).suffix.lower()
        if ext in EXTENSION_MAP:
            return EXTENSION_MAP[ext]
        raise UnsupportedFormatError(f"Unsupported file format: {ext or filename}")

    @staticmethod
    def detect_csv_delimiter(sample: str) -> str:
        """Auto-detect CSV delimiter from a text sample"""
        # Count potential delimiters on the header line
        header = sample.splitlines()[0] if sample else ""
        delimiters = {
            ",": header.count(","),
            ";": header.count(";"),
            "\t": header.count("\t"),
            "|": header.count("|"),
        }

        # Return most common, comma when nothing matches
        best = max(delimiters, key=delimiters.get)
        return best if delimiters[best] > 0 else ","

    @classmethod
    def read(
        cls,
        file_path: Union[str, Path],
        options: Optional[ReadOptions] = None
    ) -> ParsedDataset:
        """Read a data file from disk"""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")
        return cls.read_bytes(file_path.read_bytes(), file_path.name, options)

    @classmethod
    def read_bytes(
        cls,
        content: bytes,
        filename: str,
        options: Optional[ReadOptions] = None
    ) -> ParsedDataset:
        """
        Read from bytes (for uploaded files).

        Auto-detects format from the filename extension.
        """
        options = options or ReadOptions()
        format_type = cls.detect_format(filename)
        logger.info(f"Reading {format_type.value} source: {filename}")

        readers = {
            DataFormat.CSV: cls._read_csv,
            DataFormat.TSV: cls._read_tsv,
            DataFormat.EXCEL: cls._read_excel,
            DataFormat.JSON: cls._read_json,
            DataFormat.JSON_LINES: cls._read_jsonl,
        }

        dataset = readers[format_type](content, options)
        dataset.source_format = format_type

        # Apply sampling if requested
        if options.sample_rows is not None and len(dataset.rows) > options.sample_rows:
            dataset.rows = dataset.rows[:options.sample_rows]

        logger.info(
            f"Loaded {len(dataset.rows):,} rows × {len(dataset.columns)} columns "
            f"({dataset.parsing_errors} unparseable rows)"
        )
        return dataset

    @classmethod
    def list_sheets(cls, content: bytes, filename: Optional[str] = None) -> List[str]:
        """Sheet names of a workbook, without reading any rows"""
        if filename is not None:
            if cls.detect_format(filename) != DataFormat.EXCEL:
                return []
        elif not content.startswith(_ZIP_MAGIC):
            return []

        workbook = cls._open_workbook(content)
        try:
            return list(workbook.sheetnames)
        finally:
            workbook.close()

    @staticmethod
    def _decode_text(content: bytes, options: ReadOptions) -> str:
        """Decode text content, falling back to Latin-1"""
        if b"\x00" in content[:options.delimiter_sample_bytes]:
            raise SourceUnreadableError("Source looks like binary data, not delimited text")
        try:
            return content.decode(options.encoding)
        except UnicodeDecodeError:
            logger.warning(f"Source is not valid {options.encoding}, decoding as latin-1")
            return content.decode("latin-1")

    @classmethod
    def _read_csv(cls, content: bytes, options: ReadOptions) -> ParsedDataset:
        """Read CSV content"""
        text = cls._decode_text(content, options)
        delimiter = options.delimiter or cls.detect_csv_delimiter(text[:options.delimiter_sample_bytes])
        return cls._read_delimited(text, delimiter, options)

    @classmethod
    def _read_tsv(cls, content: bytes, options: ReadOptions) -> ParsedDataset:
        """Read TSV content"""
        text = cls._decode_text(content, options)
        return cls._read_delimited(text, options.delimiter or "\t", options)

    @staticmethod
    def _read_delimited(text: str, delimiter: str, options: ReadOptions) -> ParsedDataset:
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)
        headers: Optional[List[str]] = None
        rows: List[Row] = []
        parsing_errors = 0

        while True:
            try:
                record = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                parsing_errors += 1
                logger.warning(f"Skipping malformed line {reader.line_num}: {e}")
                continue

            if not record or all(cell.strip() == "" for cell in record):
                continue

            if headers is None:
                headers = _HeaderNormalizer().normalize(record)
                continue

            if len(record) != len(headers):
                parsing_errors += 1
                logger.debug(
                    f"Line {reader.line_num} has {len(record)} fields, expected {len(headers)}"
                )
                continue

            rows.append(dict(zip(headers, record)))
            if options.sample_rows is not None and len(rows) >= options.sample_rows:
                break

        if parsing_errors:
            logger.warning(f"Skipped {parsing_errors} rows that did not match the header")
        return ParsedDataset(columns=headers or [], rows=rows, parsing_errors=parsing_errors)

    @staticmethod
    def _open_workbook(content: bytes):
        try:
            return load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
            logger.error(f"Could not open workbook: {e}")
            raise SourceUnreadableError("Workbook could not be opened", details=str(e)) from e

    @classmethod
    def _read_excel(cls, content: bytes, options: ReadOptions) -> ParsedDataset:
        """Read one sheet of an Excel workbook (.xlsx, .xlsm)"""
        workbook = cls._open_workbook(content)
        try:
            sheet_names = list(workbook.sheetnames)
            if not sheet_names:
                raise SourceUnreadableError("Workbook has no sheets")
            if options.sheet_name in sheet_names:
                sheet_name = options.sheet_name
            elif 0 <= options.sheet_index < len(sheet_names):
                sheet_name = sheet_names[options.sheet_index]
            else:
                logger.warning(f"Sheet index {options.sheet_index} out of range, using '{sheet_names[0]}'")
                sheet_name = sheet_names[0]

            headers: Optional[List[str]] = None
            rows: List[Row] = []
            parsing_errors = 0

            for values in workbook[sheet_name].iter_rows(values_only=True):
                cells = [None if isinstance(v, str) and not v.strip() else v for v in values]
                if all(v is None for v in cells):
                    continue

                if headers is None:
                    # Drop trailing empty header cells
                    while cells and cells[-1] is None:
                        cells.pop()
                    headers = _HeaderNormalizer().normalize(cells)
                    continue

                if any(v is not None for v in cells[len(headers):]):
                    parsing_errors += 1
                    continue

                padded = list(values[:len(headers)]) + [None] * (len(headers) - len(values))
                rows.append(dict(zip(headers, padded)))
                if options.sample_rows is not None and len(rows) >= options.sample_rows:
                    break
        finally:
            workbook.close()

        return ParsedDataset(
            columns=headers or [],
            rows=rows,
            parsing_errors=parsing_errors,
            sheet_name=sheet_name,
            sheet_names=sheet_names,
        )

    @classmethod
    def _read_json(cls, content: bytes, options: ReadOptions) -> ParsedDataset:
        """Read JSON content (array of records)"""
        try:
            data = json.loads(content.decode(options.encoding))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Invalid JSON document: {e}")
            raise SourceUnreadableError("Invalid JSON document", details=str(e)) from e

        if isinstance(data, list):
            return records_to_dataset(data)
        elif isinstance(data, dict):
            # Try to find array in dict
            for key, value in data.items():
                if isinstance(value, list) and len(value) > 0:
                    logger.debug(f"Using records under key '{key}'")
                    return records_to_dataset(value)
            # Single record
            return records_to_dataset([data])
        else:
            raise SourceUnreadableError("JSON must be an array or object")

    @classmethod
    def _read_jsonl(cls, content: bytes, options: ReadOptions) -> ParsedDataset:
        """Read JSON Lines content (one JSON object per line)"""
        try:
            text = content.decode(options.encoding)
        except UnicodeDecodeError as e:
            raise SourceUnreadableError("JSON Lines source is not valid text", details=str(e)) from e

        records: List[Any] = []
        bad_lines = 0
        for line in text.splitlines():
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                bad_lines += 1

        dataset = records_to_dataset(records, source_format=DataFormat.JSON_LINES)
        dataset.parsing_errors += bad_lines
        return dataset


def _workbook_cell(value: Any) -> Any:
    """Coerce a row value into something openpyxl can store"""
    if value is None or isinstance(value, (bool, int, float, datetime, date)):
        return value
    if isinstance(value, (list, dict)):
        value = json.dumps(value, default=str)
    return ILLEGAL_CHARACTERS_RE.sub("", str(value))


def columns_of(rows: Sequence[Row]) -> List[str]:
    columns: List[str] = []
    seen: Set[str] = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                columns.append(key)
    return columns


class DataWriter:
    """
    Writes row records back out for download.

    Numbers are written in canonical form and missing values as empty cells.
    """

    @staticmethod
    def to_frame(rows: Sequence[Row], columns: Optional[Sequence[str]] = None) -> pl.DataFrame:
        """String-typed DataFrame in column order"""
        columns = list(columns) if columns is not None else columns_of(rows)
        data = {name: [as_text(row.get(name)) for row in rows] for name in columns}
        return pl.DataFrame(data, schema={name: pl.Utf8 for name in columns})

    @classmethod
    def serialize_csv(cls, rows: Sequence[Row], options: Optional[WriteOptions] = None) -> str:
        """CSV text for the given rows"""
        options = options or WriteOptions()
        if not rows:
            return ""
        df = cls.to_frame(rows)
        return df.write_csv(separator=options.delimiter, include_header=options.include_header)

    @classmethod
    def serialize_workbook(cls, rows: Sequence[Row], options: Optional[WriteOptions] = None) -> bytes:
        """Single-sheet .xlsx workbook for the given rows"""
        options = options or WriteOptions()
        columns = columns_of(rows)

        workbook = Workbook()
        sheet = workbook.active
        sheet.title = options.sheet_title
        if options.include_header and columns:
            sheet.append(columns)
        for row in rows:
            sheet.append([_workbook_cell(row.get(name)) for name in columns])

        buffer = io.BytesIO()
        workbook.save(buffer)
        logger.info(f"Wrote {len(rows):,} rows to workbook sheet '{options.sheet_title}'")
        return buffer.getvalue()

    @classmethod
    def serialize_json(cls, rows: Sequence[Row]) -> str:
        """JSON array text for the given rows"""
        return json.dumps(list(rows), indent=2, default=str)

    @classmethod
    def to_bytes(
        cls,
        rows: Sequence[Row],
        format_type: DataFormat,
        options: Optional[WriteOptions] = None
    ) -> bytes:
        """
        Write rows to bytes for download.
        """
        if format_type == DataFormat.CSV:
            return cls.serialize_csv(rows, options).encode("utf-8")
        elif format_type == DataFormat.EXCEL:
            return cls.serialize_workbook(rows, options)
        elif format_type == DataFormat.JSON:
            return cls.serialize_json(rows).encode("utf-8")
        else:
            raise ValidationError(f"Cannot convert to bytes: {format_type}")


# Convenience functions
def list_sheets(content: bytes, filename: Optional[str] = None) -> List[str]:
    """Sheet names of a workbook source ([] for non-workbook sources)"""
    return DataReader.list_sheets(content, filename)


def parse_rows(content: bytes, filename: str, sheet_index: int = 0, **kwargs) -> List[Row]:
    """Raw, untyped rows for preview before full analysis"""
    options = ReadOptions(sheet_index=sheet_index, **kwargs)
    return DataReader.read_bytes(content, filename, options).rows


def serialize_csv(rows: Sequence[Row]) -> str:
    return DataWriter.serialize_csv(rows)


def serialize_workbook(rows: Sequence[Row]) -> bytes:
    return DataWriter.serialize_workbook(rows)
