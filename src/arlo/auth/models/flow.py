"""Authorization flow models for the OIDC login.

Contains models for authorization requests and callback handling.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode, urlparse


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the authorization code flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    code_challenge_method: str
    state: str
    scope: str

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
            "state": self.state,
        }

        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    """Query parameters the identity provider sends back to the redirect URI."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    @classmethod
    def from_query(cls, params: dict[str, str]) -> AuthorizationResponse:
        # Empty values count as absent, as they would in a browser query string
        return cls(
            code=params.get("code") or None,
            state=params.get("state") or None,
            error=params.get("error") or None,
            error_description=params.get("error_description") or None,
        )

    @classmethod
    def from_url(cls, callback_url: str) -> AuthorizationResponse:
        """Parse a full callback URL into an AuthorizationResponse."""
        query_params = parse_qs(urlparse(callback_url).query)

        # Extract single values from query parameter lists
        return cls.from_query(
            {key: values[0] for key, values in query_params.items() if values}
        )
