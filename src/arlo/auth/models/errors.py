"""Exception hierarchy for the Arlo login flow.

Provides specific exception types for different failure modes so callers
can decide between showing an error, redirecting to login, or offering a
retry.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base exception for all authentication related errors."""

    pass


class ConfigurationError(AuthError):
    """Raised when identity provider configuration is missing or empty."""

    pass


class PKCEError(AuthError):
    """Raised when PKCE parameter generation fails."""

    pass


class AuthorizationError(AuthError):
    """Raised when the identity provider reports an error on the callback."""

    def __init__(self, message: str, error: str | None = None) -> None:
        super().__init__(message)
        self.error = error


class AuthorizationCallbackError(AuthError):
    """Raised when callback data is missing or does not match the pending flow.

    Every subclass is terminal for the callback: the caller should send the
    user back to the login entry point.
    """

    pass


class MissingAuthorizationCodeError(AuthorizationCallbackError):
    """Raised when the callback carries no authorization code."""

    pass


class MissingStateError(AuthorizationCallbackError):
    """Raised when the callback carries no state parameter."""

    pass


class FlowExpiredError(AuthorizationCallbackError):
    """Raised when the pending PKCE flow is gone.

    The verifier or stored state was already consumed, cleared, or never
    written in this storage scope.
    """

    pass


class StateValidationError(AuthorizationCallbackError):
    """Raised when the callback state does not match the stored state.

    This could indicate a CSRF attack or a second login started before this
    callback returned.
    """

    pass


class TokenError(AuthError):
    """Raised when token endpoint operations fail."""

    pass


class TokenExchangeError(TokenError):
    """Raised when authorization code to token exchange fails."""

    def __init__(
        self, message: str, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UserInfoError(TokenError):
    """Raised when the user-info endpoint rejects the access token."""

    pass


class NetworkVerificationError(AuthError):
    """Raised when the network verification endpoint denies or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
