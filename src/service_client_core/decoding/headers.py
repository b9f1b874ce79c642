"""Typed extraction of response header fields.

Each field type has one parsing rule: timestamps use the HTTP-date format
(RFC 7231), identifiers and etags are opaque strings, integers are decimal,
booleans are ``true``/``false``. A missing required header raises
MissingHeaderError; a header that is present but unparseable raises
MalformedHeaderError.

Example:
    ```python
    @dataclass
    class SetTagsResult:
        request_id: str
        date: datetime

        @classmethod
        def from_headers(cls, headers: httpx.Headers) -> "SetTagsResult":
            return cls(request_id=request_id_from_headers(headers), date=date_from_headers(headers))
    ```
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from enum import StrEnum
from typing import Any

import httpx

from service_client_core.errors.exceptions import MalformedHeaderError, MissingHeaderError

ETAG = "etag"
LAST_MODIFIED = "last-modified"
DATE = "date"
REQUEST_ID = "x-ms-request-id"
CLIENT_REQUEST_ID = "x-ms-client-request-id"
VERSION = "x-ms-version"
SERVER = "server"
CONTINUATION = "x-ms-continuation"


class HeaderKind(StrEnum):
    STRING = "string"
    DATETIME = "datetime"
    INTEGER = "integer"
    BOOLEAN = "boolean"


def parse_http_date(value: str) -> datetime:
    parsed = parsedate_to_datetime(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError(f"not a boolean: {value!r}")


PARSERS: dict[HeaderKind, Callable[[str], Any]] = {
    HeaderKind.STRING: str,
    HeaderKind.DATETIME: parse_http_date,
    HeaderKind.INTEGER: int,
    HeaderKind.BOOLEAN: parse_bool,
}


@dataclass(frozen=True)
class HeaderField:
    """Binding of a response header to a typed result field."""

    name: str
    kind: HeaderKind = HeaderKind.STRING
    required: bool = True

    def extract(self, headers: httpx.Headers) -> Any:
        return header_value(headers, self.name, self.kind, required=self.required)


def header_value(headers: httpx.Headers, name: str, kind: HeaderKind = HeaderKind.STRING, *, required: bool = True):
    """Read and parse header ``name``.

    Returns:
        The parsed value, or None for an absent optional header.

    Raises:
        MissingHeaderError: The header is required and absent.
        MalformedHeaderError: The header cannot be parsed as ``kind``.
    """
    raw = headers.get(name)
    if raw is None:
        if required:
            raise MissingHeaderError(name)
        return None
    try:
        return PARSERS[kind](raw)
    except (ValueError, TypeError) as e:
        raise MalformedHeaderError(name, raw, kind.value) from e


def etag_from_headers(headers: httpx.Headers) -> str:
    return header_value(headers, ETAG)


def last_modified_from_headers(headers: httpx.Headers) -> datetime:
    return header_value(headers, LAST_MODIFIED, HeaderKind.DATETIME)


def date_from_headers(headers: httpx.Headers) -> datetime:
    return header_value(headers, DATE, HeaderKind.DATETIME)


def request_id_from_headers(headers: httpx.Headers) -> str:
    return header_value(headers, REQUEST_ID)


def client_request_id_from_headers(headers: httpx.Headers) -> str | None:
    return header_value(headers, CLIENT_REQUEST_ID, required=False)


def version_from_headers(headers: httpx.Headers) -> str:
    return header_value(headers, VERSION)


def server_from_headers(headers: httpx.Headers) -> str:
    return header_value(headers, SERVER)
