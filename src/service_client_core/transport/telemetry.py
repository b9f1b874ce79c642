"""Telemetry and logging policies.

Neither policy changes what is sent or received beyond identifying headers:
TelemetryPolicy stamps User-Agent and a client request id, LoggingPolicy
records one line per call with method, redacted URL, outcome and elapsed time.
"""

import logging
import platform
import time
import uuid
from collections.abc import Iterable

import httpx

from service_client_core import __version__
from service_client_core.errors.exceptions import ServiceError
from service_client_core.transport.pipeline import NextHandler, Policy
from service_client_core.transport.request import API_VERSION_PARAM, Request, redact_url

logger = logging.getLogger(__name__)

CLIENT_REQUEST_ID_HEADER = "x-ms-client-request-id"


def default_user_agent(application_id: str | None = None) -> str:
    agent = f"service-client-core/{__version__} Python/{platform.python_version()} ({platform.platform()})"
    return f"{application_id} {agent}" if application_id else agent


class TelemetryPolicy(Policy):
    """Add User-Agent and a client request id when the caller has not set them.

    Args:
        application_id: Prefix identifying the calling application.
    """

    def __init__(self, application_id: str | None = None) -> None:
        self.user_agent = default_user_agent(application_id)

    async def send(self, request: Request, call_next: NextHandler) -> httpx.Response:
        if "User-Agent" not in request.headers:
            request.set_header("User-Agent", self.user_agent)
        if CLIENT_REQUEST_ID_HEADER not in request.headers:
            request.set_header(CLIENT_REQUEST_ID_HEADER, str(uuid.uuid4()))
        return await call_next(request)


class LoggingPolicy(Policy):
    """Log method, URL, status and elapsed time for every call.

    Successful calls are logged at DEBUG, error statuses and exceptions at
    WARNING. Query values are redacted except for ``allowed_query_params``;
    headers and bodies are never logged.
    """

    def __init__(self, allowed_query_params: Iterable[str] = (API_VERSION_PARAM,)) -> None:
        self.allowed_query_params = frozenset(allowed_query_params)

    async def send(self, request: Request, call_next: NextHandler) -> httpx.Response:
        url = redact_url(request.url, self.allowed_query_params)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except ServiceError as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.warning(f"{request.method} {url} failed after {elapsed_ms:.0f}ms: {type(e).__name__}: {e}")
            raise

        elapsed_ms = (time.perf_counter() - start) * 1000
        message = f"{request.method} {url} -> {response.status_code} in {elapsed_ms:.0f}ms"
        if response.is_error:
            logger.warning(message)
        else:
            logger.debug(message)
        return response
