"""Bearer token authentication policy."""

import logging
from collections.abc import Iterable

import httpx

from service_client_core.auth.token_cache import TokenCache
from service_client_core.transport.pipeline import NextHandler, Policy
from service_client_core.transport.request import Request, redact_url

logger = logging.getLogger(__name__)


class BearerTokenPolicy(Policy):
    """Set ``Authorization: Bearer <token>`` from a TokenCache.

    The token is requested for the request's own scopes, or ``scopes`` when the
    request declares none. If the service answers 401 the token that was sent
    is invalidated and the request is sent once more with a freshly acquired
    token; a second 401 is returned to the caller.

    Args:
        token_cache: Shared cache for the client's credential.
        scopes: Default scopes.
    """

    def __init__(self, token_cache: TokenCache, scopes: Iterable[str] = ()) -> None:
        self._token_cache = token_cache
        self.scopes = tuple(scopes)

    async def send(self, request: Request, call_next: NextHandler) -> httpx.Response:
        scopes = request.scopes or self.scopes

        token = await self._token_cache.get_token(*scopes)
        attempt = request.clone()
        attempt.set_header("Authorization", f"Bearer {token.token}")
        response = await call_next(attempt)

        if response.status_code != 401:
            return response

        logger.info(f"Request {request.method} {redact_url(request.url)} was rejected with 401, refreshing token once")
        await response.aclose()
        self._token_cache.invalidate(*scopes, token=token)

        token = await self._token_cache.get_token(*scopes)
        attempt = request.clone()
        attempt.set_header("Authorization", f"Bearer {token.token}")
        return await call_next(attempt)
