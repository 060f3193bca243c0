"""
REST API connector.

Fetches JSON records from an HTTP endpoint (with optional auth and
pagination) and hands them to the ingestor as a ParsedDataset, the same
shape a file upload produces.
"""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

import httpx
from loguru import logger
from pydantic import BaseModel, Field, field_validator, model_validator

from datalens.config import Settings, get_settings
from datalens.exceptions import ConnectorError
from datalens.services.data_formats import DataFormat, ParsedDataset, flatten_record, records_to_dataset

__all__ = [
    "ApiConnectorConfig",
    "AuthType",
    "PaginationType",
    "extract_records",
    "fetch_records",
    "flatten_record",
]


class AuthType(str, Enum):
    NONE = "none"
    BEARER = "bearer"
    API_KEY = "api_key"
    BASIC = "basic"


class PaginationType(str, Enum):
    NONE = "none"
    PAGE = "page"
    OFFSET = "offset"
    CURSOR = "cursor"


class ApiConnectorConfig(BaseModel):
    """Where and how to fetch records"""
    url: str
    method: Literal["GET", "POST"] = "GET"
    auth_type: AuthType = AuthType.NONE
    auth_config: Dict[str, str] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    request_body: Optional[Any] = None
    records_path: str = ""  # dotted path to the record array, e.g. "data.results"

    # Pagination
    pagination_type: PaginationType = PaginationType.NONE
    page_param: str = "page"
    per_page_param: Optional[str] = None
    page_size: int = Field(default=100, ge=1)
    offset_param: str = "offset"
    limit_param: str = "limit"
    cursor_path: str = "next_cursor"
    cursor_param: str = "cursor"
    max_pages: Optional[int] = Field(default=None, ge=1)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v

    @model_validator(mode="after")
    def validate_auth(self):
        required = {
            AuthType.BEARER: ("token",),
            AuthType.API_KEY: ("header_name", "key"),
            AuthType.BASIC: ("username", "password"),
        }.get(self.auth_type, ())
        missing = [key for key in required if not self.auth_config.get(key)]
        if missing:
            raise ValueError(f"{self.auth_type.value} auth requires: {', '.join(missing)}")
        return self

    def request_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", **self.headers}
        if self.auth_type == AuthType.BEARER:
            headers["Authorization"] = f"Bearer {self.auth_config['token']}"
        elif self.auth_type == AuthType.API_KEY:
            headers[self.auth_config["header_name"]] = self.auth_config["key"]
        return headers

    def request_auth(self) -> Optional[httpx.BasicAuth]:
        if self.auth_type == AuthType.BASIC:
            return httpx.BasicAuth(self.auth_config["username"], self.auth_config["password"])
        return None

    def page_params(self, page: int, cursor: Optional[str] = None) -> Dict[str, Any]:
        """Query parameters for one page (1-based)"""
        if self.pagination_type == PaginationType.PAGE:
            params: Dict[str, Any] = {self.page_param: page}
            if self.per_page_param:
                params[self.per_page_param] = self.page_size
            return params
        if self.pagination_type == PaginationType.OFFSET:
            return {self.offset_param: (page - 1) * self.page_size, self.limit_param: self.page_size}
        if self.pagination_type == PaginationType.CURSOR and cursor:
            return {self.cursor_param: cursor}
        return {}


def get_nested(payload: Any, path: str) -> Any:
    """Follow a dotted path through nested objects"""
    current = payload
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def extract_records(payload: Any, records_path: str = "") -> List[Any]:
    """
    Pull the record array out of a response body.

    Without a path: the body itself if it is an array, else the first
    non-empty array among its values, else the body as a single record
    (unless it only holds empty arrays).
    """
    if records_path:
        value = get_nested(payload, records_path)
        if isinstance(value, list):
            return value
        return [] if value is None else [value]

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        arrays = [value for value in payload.values() if isinstance(value, list)]
        for value in arrays:
            if value:
                return value
        # An empty array means an empty page, not a single record
        return [] if arrays else [payload]
    return []


async def fetch_records(
    config: ApiConnectorConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    settings: Optional[Settings] = None,
) -> ParsedDataset:
    """
    Fetch every page of records and return them as a dataset.

    Stops at the first empty page, a missing cursor, or the page limit.
    Any HTTP or transport failure raises ConnectorError.
    """
    settings = settings or get_settings()
    max_pages = config.max_pages or settings.CONNECTOR_MAX_PAGES
    timeout = settings.CONNECTOR_TIMEOUT_SECONDS
    body = config.request_body if config.method != "GET" else None

    records: List[Any] = []
    pages_fetched = 0
    cursor: Optional[str] = None

    async with httpx.AsyncClient(
        timeout=timeout,
        transport=transport,
        headers=config.request_headers(),
        auth=config.request_auth(),
    ) as client:
        for page in range(1, max_pages + 1):
            try:
                response = await client.request(
                    config.method,
                    config.url,
                    params=config.page_params(page, cursor),
                    json=body,
                )
                response.raise_for_status()
                payload = response.json()
            except httpx.TimeoutException as e:
                logger.error(f"Request to {config.url} timed out after {timeout}s")
                raise ConnectorError(f"Request timed out after {timeout}s") from e
            except httpx.HTTPStatusError as e:
                logger.error(f"API HTTP error: {e.response.status_code}")
                raise ConnectorError(
                    f"API returned {e.response.status_code}",
                    details=e.response.text[:500],
                ) from e
            except httpx.HTTPError as e:
                logger.error(f"Could not reach {config.url}: {e}")
                raise ConnectorError(f"Could not reach API: {e}") from e
            except ValueError as e:
                raise ConnectorError("API response is not valid JSON") from e

            pages_fetched = page
            extracted = extract_records(payload, config.records_path)
            if not extracted:
                break
            records.extend(extracted)

            if config.pagination_type == PaginationType.NONE:
                break
            if config.pagination_type == PaginationType.CURSOR:
                next_cursor = get_nested(payload, config.cursor_path)
                if not next_cursor:
                    break
                cursor = str(next_cursor)

    logger.info(f"Fetched {len(records):,} records from {config.url} in {pages_fetched} page(s)")

    # Scalar records are wrapped so every row is an object
    rows = [record if isinstance(record, dict) else {"value": record} for record in records]
    return records_to_dataset(rows, source_format=DataFormat.JSON)
