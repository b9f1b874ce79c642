"""Lazy pagination over continuation-token listings.

Paginated operations return one page of results plus an opaque continuation
token; the caller passes the token back to get the next page, and the last
page carries no token. ``PageIterator`` wraps a single-page fetch into a
forward-only sequence of pages:

    INIT --fetch ok, token--> HAS_MORE --fetch ok, no token--> EXHAUSTED
      |                          |
      +-------fetch error--------+--> FAILED

Nothing is fetched until the consumer asks for a page, and nothing is fetched
once the iterator is EXHAUSTED or FAILED. A failed fetch is raised exactly
once; to try again, start a new iterator.

Example:
    ```python
    pages = PageIterator(paged_fetch(
        pipeline,
        request,
        ResponseDecoder(200, body=json_body(FeatureListResult.from_dict)),
        next_token=token_from_field("next_link"),
        apply_token=token_as_next_link(),
    ))
    async for feature in pages.items(lambda result: result.value):
        print(feature.name)
    ```
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

import httpx

from service_client_core.decoding.decoder import ResponseDecoder
from service_client_core.transport.pipeline import Pipeline
from service_client_core.transport.request import API_VERSION_PARAM, Request

logger = logging.getLogger(__name__)

T = TypeVar("T")
Item = TypeVar("Item")


@dataclass
class Page(Generic[T]):
    """One decoded page of a listing.

    Attributes:
        value: Decoded listing result.
        continuation_token: Token for the next page; None on the last page.
        response: Raw response the page was decoded from, when available.
    """

    value: T
    continuation_token: str | None = None
    response: httpx.Response | None = None

    def __post_init__(self) -> None:
        # Services signal the last page with an empty marker as often as with none
        if not self.continuation_token:
            self.continuation_token = None


class CursorState(Enum):
    INIT = "init"
    HAS_MORE = "has_more"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


PageFetch = Callable[[str | None], Awaitable[Page[T]]]


class PageIterator(Generic[T]):
    """Forward-only, non-restartable async sequence of pages.

    ``fetch`` is called with None for the first page and with the previous
    page's continuation token afterwards. An iterator has a single consumer:
    calling ``next_page`` while a fetch is already in flight raises
    RuntimeError. If the consumer cancels during a fetch the state is left as
    it was and no page is produced.

    Args:
        fetch: Single-page fetch operation.
        continuation_token: Resume from a token saved from an earlier page.
    """

    def __init__(self, fetch: PageFetch[T], continuation_token: str | None = None) -> None:
        self._fetch = fetch
        self._fetching = False
        if continuation_token:
            self._state = CursorState.HAS_MORE
            self._token: str | None = continuation_token
        else:
            self._state = CursorState.INIT
            self._token = None

    @property
    def state(self) -> CursorState:
        return self._state

    @property
    def continuation_token(self) -> str | None:
        """Token the next fetch will use."""
        return self._token

    @property
    def done(self) -> bool:
        return self._state in (CursorState.EXHAUSTED, CursorState.FAILED)

    async def next_page(self) -> Page[T] | None:
        """Fetch the next page.

        Returns:
            The next page, or None once the listing is exhausted or has failed.

        Raises:
            ServiceError: The fetch failed. Raised once; later calls return None.
            RuntimeError: Another ``next_page`` call on this iterator is in progress.
        """
        if self.done:
            return None
        if self._fetching:
            raise RuntimeError("PageIterator does not support concurrent next_page() calls")

        self._fetching = True
        try:
            page = await self._fetch(self._token)
        except Exception:
            self._state = CursorState.FAILED
            self._token = None
            logger.debug("Page fetch failed, pagination stopped")
            raise
        finally:
            self._fetching = False

        if page.continuation_token:
            self._state = CursorState.HAS_MORE
            self._token = page.continuation_token
        else:
            self._state = CursorState.EXHAUSTED
            self._token = None
        return page

    def __aiter__(self) -> "PageIterator[T]":
        return self

    async def __anext__(self) -> Page[T]:
        page = await self.next_page()
        if page is None:
            raise StopAsyncIteration
        return page

    async def items(self, select: Callable[[T], Iterable[Item]] | None = None) -> AsyncIterator[Item]:
        """Iterate the items of every remaining page.

        Args:
            select: Extracts the items from a page value (default: the value itself).
        """
        async for page in self:
            values = select(page.value) if select is not None else page.value
            for item in values:
                yield item


# Token sources: where the next continuation token is read from.

NextToken = Callable[[httpx.Response, Any], str | None]


def token_from_header(name: str) -> NextToken:
    """Continuation token carried in response header ``name``."""

    def next_token(response: httpx.Response, value: Any) -> str | None:
        return response.headers.get(name) or None

    return next_token


def token_from_field(name: str) -> NextToken:
    """Continuation token held in field ``name`` of the decoded value (attribute or key)."""

    def next_token(response: httpx.Response, value: Any) -> str | None:
        if isinstance(value, Mapping):
            token = value.get(name)
        else:
            token = getattr(value, name, None)
        return token or None

    return next_token


# Token placement: how the token goes back on the next request.

ApplyToken = Callable[[Request, str], Request]


def token_as_query_param(name: str) -> ApplyToken:
    """Echo the token as query parameter ``name`` (e.g. ``marker``)."""

    def apply(request: Request, token: str) -> Request:
        request.set_query_param(name, token)
        return request

    return apply


def token_as_header(name: str) -> ApplyToken:
    """Echo the token in request header ``name``."""

    def apply(request: Request, token: str) -> Request:
        request.set_header(name, token)
        return request

    return apply


def token_as_next_link(api_version: str | None = None) -> ApplyToken:
    """Treat the token as the absolute URL of the next page.

    The original request's ``api-version`` is re-applied when the link omits it.
    """

    def apply(request: Request, token: str) -> Request:
        version = api_version or request.url.params.get(API_VERSION_PARAM)
        request.url = httpx.URL(token)
        if version:
            request.ensure_query_param(API_VERSION_PARAM, version)
        return request

    return apply


def paged_fetch(
    pipeline: Pipeline,
    request: Request,
    decoder: ResponseDecoder[T],
    *,
    next_token: NextToken,
    apply_token: ApplyToken,
    timeout: float | None = None,
) -> PageFetch[T]:
    """Build a single-page fetch from a base request.

    Every call clones ``request``, so all original filter and query
    parameters are re-sent, applies the continuation token when there is one,
    sends it through ``pipeline`` and decodes the page.
    """

    async def fetch(token: str | None) -> Page[T]:
        page_request = request.clone()
        if token is not None:
            page_request = apply_token(page_request, token)
        response = await pipeline.send(page_request, timeout=timeout)
        value = decoder.decode(response)
        return Page(value, next_token(response, value), response)

    return fetch
