"""Authentication components for service clients.

This module provides:
- The TokenCredential contract and the AccessToken it returns
- A per-scope token cache with single-flight refresh
- Multi-source resolution of settings and static secrets (value → env → .env → default)

Example:
    ```python
    from service_client_core.auth import StaticTokenCredential, TokenCache

    cache = TokenCache(StaticTokenCredential.from_env())
    token = await cache.get_token("https://management.azure.com/.default")
    ```
"""

from service_client_core.auth.credentials import (
    AccessToken,
    CredentialResolver,
    StaticTokenCredential,
    TokenCredential,
)
from service_client_core.auth.exceptions import (
    CredentialError,
    CredentialFileError,
    CredentialNotFoundError,
    TokenRefreshError,
)
from service_client_core.auth.token_cache import TokenCache

__all__ = [
    "AccessToken",
    "CredentialError",
    "CredentialFileError",
    "CredentialNotFoundError",
    "CredentialResolver",
    "StaticTokenCredential",
    "TokenCache",
    "TokenCredential",
    "TokenRefreshError",
]
