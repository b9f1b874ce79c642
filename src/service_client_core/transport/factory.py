"""Factory for the standard pipeline."""

from collections.abc import Iterable, Sequence

import httpx

from service_client_core.auth.credentials import TokenCredential
from service_client_core.auth.token_cache import TokenCache
from service_client_core.config import ClientOptions
from service_client_core.transport.auth import BearerTokenPolicy
from service_client_core.transport.httpx_transport import HttpxTransport
from service_client_core.transport.pipeline import Pipeline, Policy, Transport
from service_client_core.transport.retry import RetryPolicy
from service_client_core.transport.telemetry import LoggingPolicy, TelemetryPolicy


def create_pipeline(
    *,
    credential: TokenCredential | None = None,
    token_cache: TokenCache | None = None,
    scopes: Iterable[str] = (),
    options: ClientOptions | None = None,
    transport: Transport | httpx.AsyncBaseTransport | None = None,
    per_call_policies: Sequence[Policy] = (),
    per_retry_policies: Sequence[Policy] = (),
) -> Pipeline:
    """Build the standard policy chain.

    Order, outermost first: telemetry, ``per_call_policies``, logging, retry,
    ``per_retry_policies``, bearer token (when a credential or cache is given),
    transport.

    Args:
        credential: Credential to wrap in a new TokenCache.
        token_cache: Existing cache to share between clients (wins over ``credential``).
        scopes: Default scopes for the bearer token policy.
        options: Client options (default ClientOptions()).
        transport: Terminal transport, or an httpx transport to wrap in HttpxTransport.
        per_call_policies: Extra policies run once per call.
        per_retry_policies: Extra policies run on every attempt.

    Example:
        ```python
        pipeline = create_pipeline(
            credential=credential,
            scopes=["https://management.azure.com/.default"],
            options=ClientOptions.from_env(),
        )
        ```
    """
    options = options or ClientOptions()

    if token_cache is None and credential is not None:
        token_cache = TokenCache(credential, refresh_margin=options.token_refresh_margin)

    if not isinstance(transport, Transport):
        transport = HttpxTransport(transport=transport, timeout=options.transport_timeout)

    policies: list[Policy] = [
        TelemetryPolicy(options.user_agent),
        *per_call_policies,
        LoggingPolicy(options.logging_allowed_query_params),
        RetryPolicy(options.retry),
        *per_retry_policies,
    ]
    if token_cache is not None:
        policies.append(BearerTokenPolicy(token_cache, scopes))

    return Pipeline(policies, transport)
