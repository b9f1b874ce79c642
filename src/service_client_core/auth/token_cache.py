"""Per-scope access token cache with single-flight refresh.

A TokenCache sits between the bearer token policy and a TokenCredential. It
hands out a cached token while that token is valid beyond a safety margin,
and otherwise runs exactly one refresh per scope set no matter how many
requests are waiting for it.

Example:
    ```python
    cache = TokenCache(credential, refresh_margin=timedelta(minutes=2))
    token = await cache.get_token("https://management.azure.com/.default")
    ```
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import timedelta

from service_client_core.auth.credentials import AccessToken, TokenCredential
from service_client_core.auth.exceptions import TokenRefreshError
from service_client_core.errors.exceptions import AuthError

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_MARGIN = timedelta(minutes=2)

ScopeKey = frozenset[str]


def scope_key(scopes: Iterable[str]) -> ScopeKey:
    """Normalise a scope list; order and duplicates do not matter."""
    return frozenset(scopes)


class TokenCache:
    """Cache access tokens per scope set and deduplicate concurrent refreshes.

    Args:
        credential: Source of new tokens.
        refresh_margin: A token is refreshed once it is this close to expiry
            and is never returned inside the margin.
    """

    def __init__(self, credential: TokenCredential, refresh_margin: timedelta = DEFAULT_REFRESH_MARGIN) -> None:
        self._credential = credential
        self.refresh_margin = refresh_margin
        self._tokens: dict[ScopeKey, AccessToken] = {}
        # In-flight refreshes. Lookup and registration happen without an await
        # in between, so the event loop serialises them per scope set.
        self._refreshing: dict[ScopeKey, asyncio.Task[AccessToken]] = {}

    def cached(self, *scopes: str) -> AccessToken | None:
        """Return the cached token if it is still valid beyond the margin."""
        token = self._tokens.get(scope_key(scopes))
        if token is None or token.expires_within(self.refresh_margin):
            return None
        return token

    async def get_token(self, *scopes: str) -> AccessToken:
        """Return a valid token for ``scopes``, refreshing at most once concurrently.

        Raises:
            AuthError: If the credential fails. Every caller waiting on the same
                refresh receives the same error; the failure is not cached.
        """
        token = self.cached(*scopes)
        if token is not None:
            return token

        key = scope_key(scopes)
        task = self._refreshing.get(key)
        if task is None or task.done():
            task = asyncio.create_task(self._refresh(key, scopes))
            self._refreshing[key] = task
            task.add_done_callback(lambda t, key=key: self._forget(key, t))
        # A cancelled waiter must not cancel the refresh other callers share.
        return await asyncio.shield(task)

    def invalidate(self, *scopes: str, token: AccessToken | None = None) -> None:
        """Drop the cached token for ``scopes``.

        When ``token`` is given the entry is only dropped if it is still that
        token, so a rejection of a stale token cannot evict a newer one.
        """
        key = scope_key(scopes)
        current = self._tokens.get(key)
        if current is None:
            return
        if token is not None and current is not token:
            return
        logger.debug(f"Invalidating cached token for scopes {sorted(key)}")
        del self._tokens[key]

    async def _refresh(self, key: ScopeKey, scopes: tuple[str, ...]) -> AccessToken:
        logger.debug(f"Refreshing access token for scopes {sorted(key)}")
        try:
            token = await self._credential.get_token(*scopes)
        except AuthError:
            raise
        except Exception as e:
            raise TokenRefreshError(f"Failed to acquire access token: {e}", scopes=scopes) from e

        if token.expires_within(self.refresh_margin):
            raise TokenRefreshError(
                f"Credential returned a token expiring at {token.expires_on.isoformat()}, "
                f"inside the {self.refresh_margin} refresh margin",
                scopes=scopes,
            )

        self._tokens[key] = token
        logger.info(f"Acquired access token for scopes {sorted(key)}, expires at {token.expires_on.isoformat()}")
        return token

    def _forget(self, key: ScopeKey, task: asyncio.Task[AccessToken]) -> None:
        if self._refreshing.get(key) is task:
            del self._refreshing[key]
        # Mark the outcome as observed even if every waiter was cancelled.
        if not task.cancelled():
            task.exception()
