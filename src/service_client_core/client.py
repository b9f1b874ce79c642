"""Base client for generated service clients."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

import httpx

from service_client_core.auth.credentials import TokenCredential
from service_client_core.auth.token_cache import TokenCache
from service_client_core.config import ClientOptions
from service_client_core.decoding.decoder import ResponseDecoder
from service_client_core.pagination import ApplyToken, NextToken, PageIterator, paged_fetch
from service_client_core.transport.factory import create_pipeline
from service_client_core.transport.pipeline import Pipeline, Transport
from service_client_core.transport.request import API_VERSION_PARAM, Request

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ServiceClient:
    """Shared plumbing behind every generated client.

    Generated operation code builds requests with ``build_request`` and hands
    them to ``execute`` or ``paginate`` together with its decoder. The client
    owns the pipeline and the token cache.

    Args:
        endpoint: Service base URL, e.g. ``https://management.azure.com``.
        credential: Token source for bearer authentication. None sends
            unauthenticated requests.
        scopes: Default auth scopes. Defaults to ``["<endpoint>/.default"]``.
        api_version: api-version appended to every request URL that lacks one.
            ``options.api_version`` takes precedence.
        options: Retry, timeout and logging options.
        transport: Terminal transport or httpx transport (tests pass
            ``httpx.MockTransport``).

    Example:
        ```python
        class FeaturesClient(ServiceClient):
            async def list_operations(self) -> PageIterator[OperationListResult]:
                request = self.build_request("GET", "/providers/Microsoft.Features/operations")
                return self.paginate(
                    request,
                    ResponseDecoder(200, body=json_body(OperationListResult.from_dict)),
                    next_token=token_from_field("next_link"),
                    apply_token=token_as_next_link(),
                )
        ```
    """

    def __init__(
        self,
        endpoint: str,
        credential: TokenCredential | None = None,
        *,
        scopes: Iterable[str] | None = None,
        api_version: str | None = None,
        options: ClientOptions | None = None,
        transport: Transport | httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.options = options or ClientOptions()
        self.scopes = tuple(scopes) if scopes is not None else (f"{self.endpoint}/.default",)
        self.api_version = self.options.api_version or api_version
        self.token_cache = (
            TokenCache(credential, refresh_margin=self.options.token_refresh_margin) if credential else None
        )
        self.pipeline: Pipeline = create_pipeline(
            token_cache=self.token_cache,
            scopes=self.scopes,
            options=self.options,
            transport=transport,
        )

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.pipeline.aclose()

    def url(self, path: str) -> httpx.URL:
        """Join ``path`` (already formatted with its parameters) onto the endpoint."""
        return httpx.URL(f"{self.endpoint}/{path.lstrip('/')}")

    def build_request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        content: bytes | None = None,
        json: Any = None,
        idempotent: bool | None = None,
        scopes: Iterable[str] = (),
        api_version: str | None = None,
    ) -> Request:
        """Build a request against this client's endpoint.

        ``None`` values in ``params`` are skipped, list values repeat the
        parameter. The api-version is appended last, and only when ``params``
        did not already supply it.
        """
        url = self.url(path)
        if params:
            url = url.copy_merge_params({k: v for k, v in params.items() if v is not None})

        if json is not None:
            request = Request.with_json(method, url, json, headers=headers, idempotent=idempotent, scopes=scopes)
        else:
            request = Request(
                method, url, headers=headers, content=content or b"", idempotent=idempotent, scopes=scopes
            )

        version = api_version or self.api_version
        if version:
            request.ensure_query_param(API_VERSION_PARAM, version)
        return request

    async def send(self, request: Request) -> httpx.Response:
        """Send ``request`` through the pipeline and return the raw response."""
        return await self.pipeline.send(request, timeout=self.options.timeout)

    async def execute(self, request: Request, decoder: ResponseDecoder[T]) -> T:
        """Send ``request`` and decode the response."""
        response = await self.send(request)
        return decoder.decode(response)

    def paginate(
        self,
        request: Request,
        decoder: ResponseDecoder[T],
        *,
        next_token: NextToken,
        apply_token: ApplyToken,
        continuation_token: str | None = None,
    ) -> PageIterator[T]:
        """Return a lazy page iterator for a listing operation."""
        fetch = paged_fetch(
            self.pipeline,
            request,
            decoder,
            next_token=next_token,
            apply_token=apply_token,
            timeout=self.options.timeout,
        )
        return PageIterator(fetch, continuation_token=continuation_token)
