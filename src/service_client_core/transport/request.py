"""Outgoing request model shared by every pipeline policy."""

import json as jsonlib
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

API_VERSION_PARAM = "api-version"

# Idempotent HTTP methods (per RFC 7231)
IDEMPOTENT_METHODS: frozenset[str] = frozenset(["HEAD", "GET", "PUT", "DELETE", "OPTIONS", "TRACE"])

REDACTED = "REDACTED"


def redact_url(url: httpx.URL | str, allowed_params: Iterable[str] = (API_VERSION_PARAM,)) -> str:
    """Render ``url`` for logs and error messages.

    Query values outside ``allowed_params`` and any userinfo password are
    replaced with ``REDACTED``; SAS signatures and keys travel in the query.
    """
    url = httpx.URL(url)
    if url.password:
        url = url.copy_with(password=REDACTED)
    if not url.params:
        return str(url)
    allowed = set(allowed_params)
    params = [(key, value if key in allowed else REDACTED) for key, value in url.params.multi_items()]
    return str(url.copy_with(params=params))


class Request:
    """An HTTP request on its way through the pipeline.

    Headers are case-insensitive (``httpx.Headers``). The body is kept as the
    original bytes so that every retry attempt replays identical content.

    Args:
        method: HTTP method, normalised to upper case
        url: Absolute URL including query parameters
        headers: Initial headers
        content: Request body bytes
        idempotent: Explicit idempotency declaration. ``None`` derives it from
            the method.
        scopes: Auth scopes the request must be authorised for. Empty means the
            authentication policy's default scopes apply.

    Example:
        ```python
        request = Request("GET", "https://management.azure.com/providers/Microsoft.Features/operations")
        request.ensure_query_param("api-version", "2015-12-01")
        ```
    """

    def __init__(
        self,
        method: str,
        url: httpx.URL | str,
        *,
        headers: Mapping[str, str] | httpx.Headers | None = None,
        content: bytes = b"",
        idempotent: bool | None = None,
        scopes: Iterable[str] = (),
    ) -> None:
        self.method = method.upper()
        self.url = httpx.URL(url)
        self.headers = httpx.Headers(headers)
        self._content = bytes(content)
        self.idempotent = idempotent
        self.scopes = tuple(scopes)

    @classmethod
    def with_json(cls, method: str, url: httpx.URL | str, body: Any, **kwargs) -> "Request":
        """Build a request whose body is ``body`` serialised as JSON."""
        request = cls(method, url, content=jsonlib.dumps(body).encode("utf-8"), **kwargs)
        request.set_header("Content-Type", "application/json")
        return request

    @property
    def content(self) -> bytes:
        return self._content

    @property
    def is_idempotent(self) -> bool:
        if self.idempotent is not None:
            return self.idempotent
        return self.method in IDEMPOTENT_METHODS

    def set_header(self, name: str, value: str) -> None:
        """Set a header, replacing any existing values for the name."""
        self.headers[name] = value

    def add_header(self, name: str, value: str) -> None:
        """Append a value for a header that supports multiple values."""
        self.headers = httpx.Headers([*self.headers.multi_items(), (name, value)])

    def ensure_query_param(self, name: str, value: str) -> None:
        """Append a query parameter unless the URL already carries one of that name."""
        if name not in self.url.params:
            self.url = self.url.copy_add_param(name, value)

    def set_query_param(self, name: str, value: str) -> None:
        self.url = self.url.copy_set_param(name, value)

    def clone(self) -> "Request":
        """Copy the request with a fresh header set and the original body bytes."""
        return Request(
            self.method,
            self.url,
            headers=self.headers.copy(),
            content=self._content,
            idempotent=self.idempotent,
            scopes=self.scopes,
        )

    def to_httpx(self) -> httpx.Request:
        return httpx.Request(self.method, self.url, headers=self.headers, content=self._content)

    def __repr__(self) -> str:
        return f"<Request({self.method!r}, {redact_url(self.url)!r})>"
