"""
Dataset routes - sheets, preview, analyze, export
Supports CSV/TSV, Excel workbooks, JSON and JSON Lines uploads
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List

from fastapi import APIRouter, Body, File, Form, Query, Response, UploadFile
from loguru import logger

from datalens.config import settings
from datalens.exceptions import (
    ConnectorError,
    SourceUnreadableError,
    ValidationError,
    bad_gateway,
    bad_request,
    file_too_large,
    invalid_file_type,
    unprocessable,
)
from datalens.services.analyzer import analyze, analyze_records, analyze_source
from datalens.services.connectors import ApiConnectorConfig, fetch_records
from datalens.services.data_formats import DataFormat, DataReader, DataWriter, ReadOptions

router = APIRouter(prefix="/datasets", tags=["datasets"])

# Thread pool for CPU-bound operations
_executor = ThreadPoolExecutor(max_workers=4)

EXPORT_FORMATS = {
    "csv": (DataFormat.CSV, "text/csv"),
    "xlsx": (DataFormat.EXCEL, "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
    "json": (DataFormat.JSON, "application/json"),
}


def _validate_file(filename: str, file_size: int) -> None:
    """Validate file type and size"""
    ext = Path(filename).suffix.lower()
    if ext not in settings.ALLOWED_EXTENSIONS:
        raise invalid_file_type(settings.ALLOWED_EXTENSIONS)
    if file_size > settings.max_upload_bytes:
        raise file_too_large(settings.MAX_UPLOAD_SIZE_MB)


async def _read_upload(file: UploadFile) -> bytes:
    # Read content first to get size
    content = await file.read()
    _validate_file(file.filename or "", len(content))
    return content


async def _run(func, *args):
    """Run a CPU-bound call in the thread pool (non-blocking)"""
    loop = asyncio.get_event_loop()
    try:
        return await loop.run_in_executor(_executor, func, *args)
    except SourceUnreadableError as e:
        logger.error(f"Failed to read source: {e.message}")
        raise unprocessable(e.message, e.details)


def _preview_sync(content: bytes, filename: str, sheet_index: int, rows: int) -> Dict[str, Any]:
    options = ReadOptions(
        sheet_index=sheet_index,
        sample_rows=rows,
        encoding=settings.CSV_ENCODING,
        delimiter_sample_bytes=settings.DELIMITER_SAMPLE_BYTES,
    )
    dataset = DataReader.read_bytes(content, filename, options)
    return {
        "columns": dataset.columns,
        "rows": dataset.rows,
        "parsingErrors": dataset.parsing_errors,
        "sheetName": dataset.sheet_name,
    }


@router.post("/sheets")
async def list_sheets(file: UploadFile = File(...)):
    """Sheet names of an uploaded workbook ([] for other formats)"""
    content = await _read_upload(file)
    sheets = await _run(DataReader.list_sheets, content, file.filename)
    return {"sheets": sheets}


@router.post("/preview")
async def preview_dataset(
    file: UploadFile = File(...),
    sheet_index: int = Form(0),
    rows: int = Form(100),
):
    """Raw, untyped rows for preview before analysis"""
    if rows < 1 or rows > 10000:
        raise bad_request("rows must be between 1 and 10000")
    content = await _read_upload(file)
    return await _run(_preview_sync, content, file.filename, sheet_index, rows)


@router.post("/analyze")
async def analyze_upload(
    file: UploadFile = File(...),
    sheet_index: int = Form(0),
):
    """
    Full analysis of an uploaded file.
    Returns the DatasetAnalysis with camelCase keys.
    """
    content = await _read_upload(file)
    logger.info(f"Analyzing upload {file.filename} ({len(content):,} bytes)")
    analysis = await _run(analyze_source, content, file.filename, sheet_index)
    return analysis.to_dict()


@router.post("/analyze/records")
async def analyze_json_records(records: List[Any] = Body(...)):
    """
    Full analysis of a pre-parsed JSON array of records.
    Nested objects are flattened; non-object elements count as parsing errors.
    """
    analysis = await _run(analyze_records, records)
    return analysis.to_dict()


@router.post("/connect")
async def analyze_api(config: ApiConnectorConfig):
    """Fetch records from a REST API and analyze them"""
    try:
        dataset = await fetch_records(config)
    except ConnectorError as e:
        raise bad_gateway(e.message)

    def run():
        return analyze(dataset.rows, columns=dataset.columns, parsing_errors=dataset.parsing_errors)

    analysis = await _run(run)
    return analysis.to_dict()


@router.post("/export")
async def export_rows(
    rows: List[Dict[str, Any]] = Body(...),
    format: str = Query("csv"),
):
    """Download rows (usually cleanedData) as CSV, Excel or JSON"""
    if format not in EXPORT_FORMATS:
        raise ValidationError(
            f"Unknown export format '{format}'",
            details={"allowed": sorted(EXPORT_FORMATS)},
        )
    format_type, media_type = EXPORT_FORMATS[format]
    content = await _run(DataWriter.to_bytes, rows, format_type)

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="cleaned_data.{format}"'},
    )
