"""Mapping of unexpected HTTP statuses onto structured exceptions."""

from collections.abc import Iterable

import httpx

from service_client_core.errors.exceptions import (
    BadRequestError,
    ClientError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ServerError,
    UnauthorizedError,
    UnexpectedStatusError,
    ValidationError,
)
from service_client_core.errors.models import ProblemDetail

# Bytes of the response body kept on the exception for diagnostics
BODY_SNAPSHOT_LIMIT = 1024

STATUS_EXCEPTIONS: dict[int, type[UnexpectedStatusError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    429: RateLimitError,
}


def _exception_class(status_code: int) -> type[UnexpectedStatusError]:
    if status_code in STATUS_EXCEPTIONS:
        return STATUS_EXCEPTIONS[status_code]
    if 400 <= status_code < 500:
        return ClientError
    if 500 <= status_code < 600:
        return ServerError
    return UnexpectedStatusError


def _request_of(response: httpx.Response) -> httpx.Request | None:
    try:
        return response.request
    except RuntimeError:
        return None


def _parse_retry_after_seconds(response: httpx.Response) -> int | None:
    try:
        return int(response.headers["retry-after"])
    except (KeyError, ValueError, TypeError):
        return None


def raise_for_status(response: httpx.Response, expected: Iterable[int] | None = None) -> None:
    """Raise an UnexpectedStatusError unless the response status is expected.

    Args:
        response: HTTP response object (already read)
        expected: Success status codes declared by the operation. When omitted
            any 2xx status is accepted.

    Raises:
        UnexpectedStatusError subclass based on status code
    """
    status_code = response.status_code
    expected_set = frozenset(expected) if expected is not None else None

    if expected_set is None:
        if response.is_success:
            return
    elif status_code in expected_set:
        return

    problem_detail = ProblemDetail.from_response(response)
    body = response.content[:BODY_SNAPSHOT_LIMIT]

    if problem_detail:
        message = f"HTTP {status_code}: {problem_detail.to_exception_message()}"
    else:
        response_text = response.text[:200]
        message = f"HTTP {status_code}: {response_text}" if response_text else f"HTTP {status_code}"

    request = _request_of(response)
    exc_class = _exception_class(status_code)
    kwargs = {
        "status_code": status_code,
        "response": response,
        "problem_detail": problem_detail,
        "body": body,
        "expected": expected_set,
        "method": request.method if request is not None else None,
        "url": str(request.url) if request is not None else None,
    }

    if exc_class is RateLimitError:
        raise RateLimitError(message, retry_after=_parse_retry_after_seconds(response), **kwargs)

    if exc_class is ValidationError:
        validation_errors = None
        if problem_detail and problem_detail.extensions:
            if "errors" in problem_detail.extensions:
                validation_errors = problem_detail.extensions.get("errors")
            else:
                validation_errors = problem_detail.extensions.get("validation_errors")
        raise ValidationError(message, validation_errors=validation_errors, **kwargs)

    raise exc_class(message, **kwargs)
