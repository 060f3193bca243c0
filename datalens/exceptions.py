"""
DataLens Custom Exceptions - Centralized error handling

Only a source that cannot be opened at all is fatal. Row- and cell-level
problems are recovered inside the pipeline and reported as counters.
"""
from fastapi import HTTPException, status
from typing import Any


class DataLensException(Exception):
    """Base exception for DataLens"""
    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(self.message)


class SourceUnreadableError(DataLensException):
    """The input cannot be opened or decoded at all"""
    pass


class UnsupportedFormatError(SourceUnreadableError):
    """The input container is not a supported format"""
    pass


class ConnectorError(DataLensException):
    """Fetching records from a remote API failed"""
    pass


class ValidationError(DataLensException):
    """Bad caller input, e.g. an unknown export format"""
    pass


# HTTP Exception helpers for consistent responses
def bad_request(message: str, details: Any = None) -> HTTPException:
    """Return 400 Bad Request"""
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": message, "details": details} if details else message
    )


def unprocessable(message: str, details: Any = None) -> HTTPException:
    """Return 422 Unprocessable Entity"""
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": message, "details": details} if details else message
    )


def bad_gateway(message: str) -> HTTPException:
    """Return 502 Bad Gateway"""
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=message
    )


def file_too_large(max_size_mb: int) -> HTTPException:
    """Return 413 Payload Too Large"""
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"File too large. Maximum size is {max_size_mb}MB"
    )


def invalid_file_type(allowed: set[str]) -> HTTPException:
    """Return 415 Unsupported Media Type"""
    return HTTPException(
        status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        detail=f"Invalid file type. Allowed: {', '.join(sorted(allowed))}"
    )
