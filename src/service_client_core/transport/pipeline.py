"""Policy chain that every request runs through.

A pipeline is an ordered list of policies ending in a transport. Each policy
receives the request and a ``call_next`` coroutine for the rest of the chain;
it may change the request, call the rest of the chain zero or more times, and
inspect or replace the response or error on the way back.

Example:
    ```python
    pipeline = Pipeline(
        [LoggingPolicy(), RetryPolicy(), BearerTokenPolicy(cache, scopes)],
        HttpxTransport(),
    )
    async with pipeline:
        response = await pipeline.send(Request("GET", url))
    ```
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence

import httpx

from service_client_core.errors.exceptions import RequestCancelledError
from service_client_core.transport.request import Request, redact_url

logger = logging.getLogger(__name__)

NextHandler = Callable[[Request], Awaitable[httpx.Response]]


class Policy(ABC):
    """A single cross-cutting behaviour in the pipeline.

    Policies must not keep per-request state on ``self``; one pipeline is shared
    by concurrent calls.
    """

    @abstractmethod
    async def send(self, request: Request, call_next: NextHandler) -> httpx.Response:
        """Process ``request``, forwarding it with ``call_next`` as needed."""


class Transport(ABC):
    """Terminal step of a pipeline: put the request on the wire."""

    @abstractmethod
    async def send(self, request: Request) -> httpx.Response: ...

    async def aclose(self) -> None:
        return None


class Pipeline:
    """Runs requests through ``policies`` (outermost first) and ``transport``.

    Args:
        policies: Policies in outer-to-inner order.
        transport: Terminal send.
    """

    def __init__(self, policies: Sequence[Policy], transport: Transport) -> None:
        self._policies = tuple(policies)
        self._transport = transport

    @property
    def policies(self) -> tuple[Policy, ...]:
        return self._policies

    @property
    def transport(self) -> Transport:
        return self._transport

    async def __aenter__(self) -> "Pipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    def _handler(self, index: int) -> NextHandler:
        if index == len(self._policies):
            return self._transport.send

        policy = self._policies[index]

        async def handle(request: Request) -> httpx.Response:
            return await policy.send(request, self._handler(index + 1))

        return handle

    async def send(self, request: Request, *, timeout: float | None = None) -> httpx.Response:
        """Send ``request`` through the policy chain.

        Args:
            request: The request to send. Policies work on clones, so the
                caller's instance is left as it was built.
            timeout: Overall deadline in seconds covering every attempt and
                backoff delay.

        Raises:
            ServiceError: The terminal error after policies gave up.
            RequestCancelledError: If ``timeout`` elapsed.
        """
        handler = self._handler(0)
        if timeout is None:
            return await handler(request.clone())

        try:
            async with asyncio.timeout(timeout):
                return await handler(request.clone())
        except TimeoutError as e:
            logger.warning(f"Request {request.method} {redact_url(request.url)} abandoned after {timeout}s deadline")
            raise RequestCancelledError(
                f"Request exceeded its {timeout}s deadline",
                method=request.method,
                url=str(request.url),
            ) from e
