"""Credentials and access tokens.

Acquiring tokens (device login, client secrets, managed identity) belongs to
credential implementations outside this package. This module defines the
contract they fulfil, the token they hand back, and the resolver used to
pull settings and static secrets from the environment.

Resolution order for settings (highest to lowest priority):
1. Explicitly provided value
2. Environment variable
3. .env file (python-dotenv)
4. Default value

Example:
    ```python
    from service_client_core.auth import CredentialResolver, StaticTokenCredential

    resolver = CredentialResolver()
    credential = StaticTokenCredential.from_env(resolver)
    ```

Security Considerations:
    - Secrets are never logged in full (masked with ***)
    - Only source information is logged (env var name, file path, etc.)
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from threading import Lock
from typing import Protocol, runtime_checkable

from dotenv import load_dotenv

from service_client_core.auth.exceptions import CredentialFileError, CredentialNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_ENV_VAR = "SERVICE_CLIENT_ACCESS_TOKEN"
DEFAULT_TOKEN_FILE_ENV_VAR = "SERVICE_CLIENT_ACCESS_TOKEN_FILE"


@dataclass(frozen=True)
class AccessToken:
    """A bearer token and the instant it stops being valid.

    Attributes:
        token: Opaque secret sent in the ``Authorization`` header.
        expires_on: Absolute, timezone-aware expiry instant.
        scopes: Scope set the token was issued for.
    """

    token: str = field(repr=False)
    expires_on: datetime
    scopes: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.expires_on.tzinfo is None:
            raise ValueError("AccessToken.expires_on must be timezone-aware")

    def expires_within(self, margin: timedelta, now: datetime | None = None) -> bool:
        """Whether the token expires within ``margin`` of ``now``."""
        now = now or datetime.now(UTC)
        return self.expires_on - margin <= now


@runtime_checkable
class TokenCredential(Protocol):
    """Anything that can produce an access token for a set of scopes."""

    async def get_token(self, *scopes: str) -> AccessToken: ...


class StaticTokenCredential:
    """Credential that always returns the same pre-issued token.

    Useful for tokens minted out of band (CI secrets, ``az account
    get-access-token``) and for tests.
    """

    def __init__(self, token: str, expires_on: datetime | None = None):
        self._token = token
        self._expires_on = expires_on or datetime.now(UTC) + timedelta(hours=1)

    @classmethod
    def from_env(
        cls,
        resolver: "CredentialResolver | None" = None,
        *,
        env_var_name: str = DEFAULT_TOKEN_ENV_VAR,
        file_env_var_name: str = DEFAULT_TOKEN_FILE_ENV_VAR,
    ) -> "StaticTokenCredential":
        """Build a credential from an env var, falling back to a token file.

        Raises:
            CredentialNotFoundError: If neither source yields a token.
        """
        resolver = resolver or CredentialResolver()
        token = resolver.resolve(env_var_name=env_var_name)
        if token is None:
            token = resolver.resolve_from_file(env_var_name=file_env_var_name)
        if not token:
            raise CredentialNotFoundError(
                f"Access token not found (checked env vars: {env_var_name}, {file_env_var_name})",
                env_var_name=env_var_name,
            )
        return cls(token)

    async def get_token(self, *scopes: str) -> AccessToken:
        return AccessToken(self._token, self._expires_on, frozenset(scopes))


class CredentialResolver:
    """Resolve settings and secrets from multiple sources with priority ordering.

    One resolver serves both client settings (``ClientOptions.from_env``) and
    static secrets (``StaticTokenCredential.from_env``). Explicit values win
    over environment variables, which win over values loaded from a .env
    file, which win over defaults. A .env value never overrides a variable
    already set in the process environment.

    Attributes:
        _dotenv_loaded: Whether the .env file has been loaded (or attempted).
        _dotenv_lock: Guards the one-time .env load across threads.

    Example:
        ```python
        resolver = CredentialResolver()

        # Setting with a fallback
        api_version = resolver.resolve(env_var_name="SERVICE_CLIENT_API_VERSION", default="2021-06-01")

        # Secret that must be present
        token = resolver.resolve(env_var_name="SERVICE_CLIENT_ACCESS_TOKEN", required=True)

        # Secret mounted as a file (Kubernetes secret, CI artifact)
        token = resolver.resolve_from_file(env_var_name="SERVICE_CLIENT_ACCESS_TOKEN_FILE")
        ```
    """

    def __init__(self, dotenv_path: str | None = None, load_dotenv: bool = True):
        """Initialize the resolver.

        Args:
            dotenv_path: Path to .env file. If None, python-dotenv searches
                parent directories.
            load_dotenv: Whether to load a .env file at all. Tests pass False
                so a developer's .env cannot leak into them.

        Example:
            ```python
            # Settings for a deployment
            resolver = CredentialResolver(dotenv_path="/etc/service-client/.env")

            # Process environment only
            resolver = CredentialResolver(load_dotenv=False)
            ```
        """
        self._dotenv_loaded = False
        self._dotenv_lock = Lock()
        self._dotenv_path = dotenv_path
        self._load_dotenv_enabled = load_dotenv

        if self._load_dotenv_enabled:
            self._ensure_dotenv_loaded()

    def _ensure_dotenv_loaded(self) -> None:
        """Load the .env file once (thread-safe)."""
        if self._dotenv_loaded:
            return

        with self._dotenv_lock:
            if self._dotenv_loaded:
                return

            try:
                load_dotenv(dotenv_path=self._dotenv_path)
                logger.debug("Loaded .env file for configuration")
            except OSError as e:
                logger.warning(f"Failed to load .env file: {e}")
            self._dotenv_loaded = True

    def resolve(
        self,
        *,
        value: str | None = None,
        env_var_name: str | None = None,
        default: str | None = None,
        required: bool = False,
        mask_in_logs: bool = True,
    ) -> str | None:
        """Resolve a value from the first source that has one.

        Args:
            value: Explicitly provided value (highest priority).
            env_var_name: Environment variable to check (includes values
                loaded from .env).
            default: Fallback when no other source has a value.
            required: Raise CredentialNotFoundError instead of returning None.
            mask_in_logs: Log the value as *** (disable for non-secret settings).

        Returns:
            Resolved value, or None if not found and not required.

        Raises:
            CredentialNotFoundError: If required=True and nothing was found.

        Example:
            ```python
            # Non-secret setting, logged in clear
            user_agent = resolver.resolve(env_var_name="SERVICE_CLIENT_USER_AGENT", mask_in_logs=False)

            # A value passed by the caller short-circuits the lookup
            token = resolver.resolve(value=cli_token, env_var_name="SERVICE_CLIENT_ACCESS_TOKEN")

            # Missing secret is an error
            token = resolver.resolve(env_var_name="SERVICE_CLIENT_ACCESS_TOKEN", required=True)
            ```
        """
        result = None
        source = None

        # Explicit value, then environment (.env already merged), then default
        if value is not None:
            result = value
            source = "explicit parameter"
        elif env_var_name and env_var_name in os.environ:
            result = os.environ[env_var_name]
            source = f"environment variable '{env_var_name}'"
        elif default is not None:
            result = default
            source = "default value"

        if result is not None:
            shown = "***" if mask_in_logs else result
            logger.debug(f"Resolved {env_var_name or 'value'} from {source}: {shown}")

        if required and result is None:
            error_msg = "Required credential not found"
            if env_var_name:
                error_msg += f" (checked env var: {env_var_name})"
            raise CredentialNotFoundError(error_msg, env_var_name=env_var_name)

        return result

    def resolve_from_file(
        self,
        *,
        file_path: str | Path | None = None,
        env_var_name: str | None = None,
        required: bool = False,
    ) -> str | None:
        """Read a secret from a file whose path is given or held in an env var.

        Secrets are often mounted as files rather than exported as variables,
        e.g. a Kubernetes secret volume or the output of
        ``az account get-access-token --query accessToken -o tsv``.

        Args:
            file_path: Path to the secret file. ``~`` and ``$VAR`` are expanded.
            env_var_name: Environment variable holding the path, used when
                ``file_path`` is None.
            required: Raise CredentialFileError instead of returning None.

        Returns:
            File contents with surrounding whitespace stripped, or None if no
            path was given or the file is absent and not required.

        Raises:
            CredentialFileError: If required=True and the file cannot be read.

        Example:
            ```python
            token = resolver.resolve_from_file(file_path="~/.config/service-client/token")

            # Path from SERVICE_CLIENT_ACCESS_TOKEN_FILE
            token = resolver.resolve_from_file(env_var_name="SERVICE_CLIENT_ACCESS_TOKEN_FILE", required=True)
            ```
        """
        path_to_use = None

        if file_path is not None:
            path_to_use = str(file_path)
        elif env_var_name:
            path_to_use = self.resolve(env_var_name=env_var_name, mask_in_logs=False)

        if not path_to_use:
            if required:
                error_msg = "No file path provided for credential resolution"
                if env_var_name:
                    error_msg += f" (env var '{env_var_name}' not set)"
                raise CredentialFileError(error_msg)
            return None

        path_obj = Path(os.path.expanduser(os.path.expandvars(path_to_use)))

        try:
            content = path_obj.read_text().strip()
        except FileNotFoundError:
            error_msg = f"Credential file not found: {path_obj}"
            if required:
                raise CredentialFileError(error_msg) from None
            logger.debug(error_msg)
            return None
        except OSError as e:
            error_msg = f"Error reading credential file {path_obj}: {e}"
            if required:
                raise CredentialFileError(error_msg) from e
            logger.warning(error_msg)
            return None

        logger.debug(f"Resolved credential from file: {path_obj} (***)")
        return content
