"""Structured exceptions for request execution."""

from collections.abc import Iterable
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from service_client_core.errors.models import ProblemDetail


class ErrorKind(StrEnum):
    """Coarse classification carried by every ServiceError."""

    TRANSPORT = "transport"
    UNEXPECTED_STATUS = "unexpected_status"
    AUTH = "auth"
    DECODE = "decode"
    CANCELLED = "cancelled"


class ServiceError(Exception):
    """Base exception for everything raised by the request pipeline."""

    kind: ErrorKind

    def __init__(self, message: str, *, method: str | None = None, url: str | None = None):
        super().__init__(message)
        self.method = method
        self.url = url


class TransportError(ServiceError):
    """Connection, timeout or protocol failure below the HTTP layer."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, *, attempts: int = 1, **kwargs):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class UnexpectedStatusError(ServiceError):
    """Response status outside the caller's declared success set."""

    kind = ErrorKind.UNEXPECTED_STATUS

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: "httpx.Response | None" = None,
        problem_detail: "ProblemDetail | None" = None,
        body: bytes = b"",
        expected: Iterable[int] | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.response = response
        self.problem_detail = problem_detail
        self.body = body
        self.expected = frozenset(expected) if expected is not None else None


class ClientError(UnexpectedStatusError):
    """4xx client errors."""

    pass


class BadRequestError(ClientError):
    """400 Bad Request."""

    pass


class UnauthorizedError(ClientError):
    """401 Unauthorized."""

    pass


class ForbiddenError(ClientError):
    """403 Forbidden."""

    pass


class NotFoundError(ClientError):
    """404 Not Found."""

    pass


class ConflictError(ClientError):
    """409 Conflict."""

    pass


class ValidationError(ClientError):
    """422 Unprocessable Entity (validation errors)."""

    def __init__(self, message: str, validation_errors: list[dict] | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.validation_errors = validation_errors if validation_errors is not None else []


class RateLimitError(ClientError):
    """429 Too Many Requests."""

    def __init__(self, message: str, retry_after: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServerError(UnexpectedStatusError):
    """5xx server errors."""

    pass


class AuthError(ServiceError):
    """Credential or token acquisition failure."""

    kind = ErrorKind.AUTH


class DecodeError(ServiceError):
    """A successful response whose headers or body could not be decoded.

    Attributes:
        status_code: Status of the response being decoded, when known.
    """

    kind = ErrorKind.DECODE

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class MissingHeaderError(DecodeError):
    """A required response header is absent."""

    def __init__(self, header: str, **kwargs):
        super().__init__(f"Required header '{header}' is missing from the response", **kwargs)
        self.header = header


class MalformedHeaderError(DecodeError):
    """A response header is present but cannot be parsed."""

    def __init__(self, header: str, value: str, expected: str, **kwargs):
        super().__init__(f"Header '{header}' has malformed {expected} value: {value!r}", **kwargs)
        self.header = header
        self.value = value


class MalformedBodyError(DecodeError):
    """The response payload cannot be parsed into the expected result."""

    def __init__(self, message: str, body: bytes = b"", **kwargs):
        super().__init__(message, **kwargs)
        self.body = body


class RequestCancelledError(ServiceError):
    """The pipeline abandoned a call, e.g. because its deadline passed.

    Cancellation initiated by the caller surfaces as ``asyncio.CancelledError``
    and is never wrapped.
    """

    kind = ErrorKind.CANCELLED
