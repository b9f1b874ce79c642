"""Client configuration.

Options are plain dataclasses so generated clients can construct them
directly. ``ClientOptions.from_env`` fills them from environment variables
(and a .env file) through the CredentialResolver.

Example:
    ```python
    from service_client_core.config import ClientOptions, RetryOptions

    options = ClientOptions(retry=RetryOptions(max_retries=5), timeout=120.0)

    # SERVICE_CLIENT_MAX_RETRIES=5 SERVICE_CLIENT_TIMEOUT=120
    options = ClientOptions.from_env()
    ```
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import TypeVar

from service_client_core.auth.credentials import CredentialResolver

T = TypeVar("T")

DEFAULT_ENV_PREFIX = "SERVICE_CLIENT_"


def parse_status_codes(value: str) -> frozenset[int]:
    """Parse a comma-separated status list such as ``429,503``."""
    codes = frozenset(int(part) for part in value.split(",") if part.strip())
    if not codes or any(not 100 <= code <= 599 for code in codes):
        raise ValueError(f"not a list of HTTP status codes: {value!r}")
    return codes


@dataclass(frozen=True)
class RetryOptions:
    """Retry budget and backoff shape.

    The delay before retry ``n`` (1-indexed) is
    ``min(initial_backoff * backoff_factor ** (n - 1), max_backoff)`` plus up
    to ``jitter`` times that value. A ``Retry-After`` hint replaces the
    computed delay and is capped at ``max_backoff``.
    """

    max_retries: int = 3
    initial_backoff: float = 0.8
    backoff_factor: float = 2.0
    max_backoff: float = 60.0
    jitter: float = 0.2
    retry_status_codes: frozenset[int] = frozenset([429, 500, 502, 503, 504])

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_backoff < 0 or self.max_backoff < 0:
            raise ValueError("backoff values must be >= 0")
        if self.jitter < 0:
            raise ValueError("jitter must be >= 0")


@dataclass(frozen=True)
class ClientOptions:
    """Everything a pipeline needs besides the credential and transport.

    Attributes:
        retry: Retry budget and backoff.
        timeout: Overall deadline for one call, retries included. None disables it.
        transport_timeout: Per-attempt httpx timeout in seconds.
        token_refresh_margin: Tokens closer than this to expiry are refreshed.
        user_agent: Appended to the library's User-Agent.
        api_version: Overrides the generated client's default api-version.
        logging_allowed_query_params: Query parameters logged unredacted.
    """

    retry: RetryOptions = field(default_factory=RetryOptions)
    timeout: float | None = None
    transport_timeout: float = 30.0
    token_refresh_margin: timedelta = timedelta(minutes=2)
    user_agent: str | None = None
    api_version: str | None = None
    logging_allowed_query_params: frozenset[str] = frozenset(["api-version"])

    @classmethod
    def from_env(
        cls,
        resolver: CredentialResolver | None = None,
        *,
        prefix: str = DEFAULT_ENV_PREFIX,
        base: "ClientOptions | None" = None,
    ) -> "ClientOptions":
        """Read options from ``<prefix>*`` environment variables.

        Unset variables keep the value from ``base`` (or the defaults).
        Variable names after the prefix: MAX_RETRIES, INITIAL_BACKOFF,
        BACKOFF_FACTOR, MAX_BACKOFF, JITTER, RETRY_STATUS_CODES (comma-separated),
        TIMEOUT, TRANSPORT_TIMEOUT, TOKEN_REFRESH_MARGIN (seconds), USER_AGENT
        and API_VERSION.

        Raises:
            ValueError: If a variable is set but cannot be parsed.
        """
        resolver = resolver or CredentialResolver()
        base = base or cls()

        def read(name: str, parse: Callable[[str], T], current: T) -> T:
            env_var_name = f"{prefix}{name}"
            raw = resolver.resolve(env_var_name=env_var_name, mask_in_logs=False)
            if raw is None or raw.strip() == "":
                return current
            try:
                return parse(raw.strip())
            except ValueError as e:
                raise ValueError(f"Invalid value for {env_var_name}: {raw!r}") from e

        retry = replace(
            base.retry,
            max_retries=read("MAX_RETRIES", int, base.retry.max_retries),
            initial_backoff=read("INITIAL_BACKOFF", float, base.retry.initial_backoff),
            backoff_factor=read("BACKOFF_FACTOR", float, base.retry.backoff_factor),
            max_backoff=read("MAX_BACKOFF", float, base.retry.max_backoff),
            jitter=read("JITTER", float, base.retry.jitter),
            retry_status_codes=read("RETRY_STATUS_CODES", parse_status_codes, base.retry.retry_status_codes),
        )

        return replace(
            base,
            retry=retry,
            timeout=read("TIMEOUT", float, base.timeout),
            transport_timeout=read("TRANSPORT_TIMEOUT", float, base.transport_timeout),
            token_refresh_margin=read(
                "TOKEN_REFRESH_MARGIN", lambda v: timedelta(seconds=float(v)), base.token_refresh_margin
            ),
            user_agent=read("USER_AGENT", str, base.user_agent),
            api_version=read("API_VERSION", str, base.api_version),
        )
