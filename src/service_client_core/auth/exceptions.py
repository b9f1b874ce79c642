"""Exceptions raised while resolving credentials and acquiring tokens.

Every exception here is an AuthError, so callers of the pipeline can handle
token acquisition and credential configuration problems together.

Example:
    ```python
    from service_client_core.auth.exceptions import CredentialNotFoundError

    if not token:
        raise CredentialNotFoundError("Access token not found", env_var_name="SERVICE_CLIENT_ACCESS_TOKEN")
    ```
"""

from service_client_core.errors.exceptions import AuthError


class CredentialError(AuthError):
    """Base exception for credential configuration errors."""

    pass


class CredentialNotFoundError(CredentialError):
    """Raised when a required credential cannot be resolved.

    Attributes:
        env_var_name: The environment variable name that was checked (if any).
    """

    def __init__(self, message: str, env_var_name: str | None = None):
        super().__init__(message)
        self.env_var_name = env_var_name


class CredentialFileError(CredentialError):
    """Raised when a credential file cannot be read."""

    pass


class TokenRefreshError(AuthError):
    """Raised when a credential fails to produce a usable access token.

    Attributes:
        scopes: The scope set the refresh was attempted for.
    """

    def __init__(self, message: str, scopes: tuple[str, ...] = ()):
        super().__init__(message)
        self.scopes = scopes
