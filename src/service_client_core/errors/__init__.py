"""Error taxonomy and status handling for service clients."""

from service_client_core.errors.exceptions import (
    AuthError,
    BadRequestError,
    ClientError,
    ConflictError,
    DecodeError,
    ErrorKind,
    ForbiddenError,
    MalformedBodyError,
    MalformedHeaderError,
    MissingHeaderError,
    NotFoundError,
    RateLimitError,
    RequestCancelledError,
    ServerError,
    ServiceError,
    TransportError,
    UnauthorizedError,
    UnexpectedStatusError,
    ValidationError,
)
from service_client_core.errors.handler import raise_for_status
from service_client_core.errors.models import ProblemDetail

__all__ = [
    "AuthError",
    "BadRequestError",
    "ClientError",
    "ConflictError",
    "DecodeError",
    "ErrorKind",
    "ForbiddenError",
    "MalformedBodyError",
    "MalformedHeaderError",
    "MissingHeaderError",
    "NotFoundError",
    "ProblemDetail",
    "RateLimitError",
    "RequestCancelledError",
    "ServerError",
    "ServiceError",
    "TransportError",
    "UnauthorizedError",
    "UnexpectedStatusError",
    "ValidationError",
    "raise_for_status",
]
