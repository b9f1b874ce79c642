"""Terminal transport sending requests with httpx."""

import logging

import httpx

from service_client_core.errors.exceptions import TransportError
from service_client_core.transport.pipeline import Transport
from service_client_core.transport.request import Request, redact_url

logger = logging.getLogger(__name__)


class HttpxTransport(Transport):
    """Send requests over an ``httpx.AsyncClient``.

    Connection pooling, TLS and proxies are left to httpx. Failures below the
    HTTP layer (connect errors, timeouts, protocol errors) are raised as
    TransportError; every response, whatever its status, is returned fully read.

    Args:
        client: Client to send with. If omitted one is created and owned by
            this transport.
        transport: httpx transport for an owned client (e.g.
            ``httpx.MockTransport`` in tests).
        timeout: Per-attempt timeout in seconds for an owned client.

    Example:
        ```python
        transport = HttpxTransport(timeout=10.0)
        response = await transport.send(Request("GET", "https://api.example.com/items"))
        await transport.aclose()
        ```
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(transport=transport, timeout=timeout)

    async def send(self, request: Request) -> httpx.Response:
        try:
            return await self._client.send(request.to_httpx())
        except httpx.TransportError as e:
            raise TransportError(
                f"{type(e).__name__} while sending {request.method} {redact_url(request.url)}: {e}",
                method=request.method,
                url=str(request.url),
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
