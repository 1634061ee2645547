"""Token, identity and session models for the OIDC login.

Contains the token request/response pair, the user-info claims and the
persisted session record.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


@dataclass(frozen=True)
class TokenRequest:
    """Token exchange request parameters (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636) proving this client started
    the authorization request.
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).
        """
        return {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": self.code_verifier,
        }


class TokenResponse(BaseModel):
    """Successful token endpoint response (RFC 6749 Section 5.1, OIDC Core 3.1.3.3)."""

    access_token: str
    id_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None


class UserInfo(BaseModel):
    """Claims returned by the user-info endpoint (OIDC Core 5.3.2)."""

    sub: str
    email: str
    email_verified: bool = False
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    preferred_username: str | None = None

    @property
    def display_name(self) -> str | None:
        return self.name or self.given_name


class AuthUser(BaseModel):
    """The locally persisted session.

    Serialized with camelCase keys so the record format stays stable across
    clients. ``expires_at`` is an absolute epoch timestamp in milliseconds.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    email: str
    name: str | None = None
    picture: str | None = None
    access_token: str
    id_token: str
    refresh_token: str | None = None
    expires_at: int

    @classmethod
    def from_tokens(
        cls, token_response: TokenResponse, user_info: UserInfo, now: float
    ) -> AuthUser:
        """Assemble a session from the token and user-info responses.

        Args:
            token_response: Response from the token endpoint
            user_info: Claims from the user-info endpoint
            now: Current time as epoch seconds
        """
        return cls(
            id=user_info.sub,
            email=user_info.email,
            name=user_info.display_name,
            picture=user_info.picture,
            access_token=token_response.access_token,
            id_token=token_response.id_token,
            refresh_token=token_response.refresh_token,
            expires_at=int(now * 1000) + token_response.expires_in * 1000,
        )

    def is_expired(self, now: float) -> bool:
        """True once ``now`` (epoch seconds) reaches the expiry timestamp."""
        return int(now * 1000) >= self.expires_at

    def to_record(self) -> str:
        return self.model_dump_json(by_alias=True)

    def public_profile(self) -> dict[str, str | None]:
        """Identity fields that are safe to hand to the rest of the app."""
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "picture": self.picture,
        }


@dataclass(frozen=True)
class EndSessionRequest:
    """RP-initiated logout parameters (OIDC RP-Initiated Logout 1.0)."""

    end_session_endpoint: str
    id_token_hint: str
    post_logout_redirect_uri: str

    def build_url(self) -> str:
        params = {
            "id_token_hint": self.id_token_hint,
            "post_logout_redirect_uri": self.post_logout_redirect_uri,
        }
        return f"{self.end_session_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class AuthState:
    """Snapshot of application-wide authentication state."""

    user: AuthUser | None = None
    is_authenticated: bool = False
    network_verified: bool = False
    is_loading: bool = False
    error: str | None = None
