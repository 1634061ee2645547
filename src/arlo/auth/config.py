"""Identity provider and verification-gate configuration.

Values are injected from the environment (optionally via a ``.env`` file
loaded with python-dotenv); nothing here is a hard-coded secret.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator

from arlo.auth.models.errors import ConfigurationError

ENV_PREFIX = "ARLO_"

DEFAULT_SCOPE = "openid email profile"
DEFAULT_VERIFY_TIMEOUT = 10.0
DEFAULT_VERIFY_TTL = 15 * 60
DEFAULT_SESSION_FILE = "~/.arlo/session.json"


class ProviderEndpoints(BaseModel):
    """OIDC endpoints of the identity provider."""

    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str
    end_session_endpoint: str

    @classmethod
    def for_domain(cls, domain: str) -> ProviderEndpoints:
        """Endpoint layout of a Zitadel instance at ``domain``."""
        base = domain if "://" in domain else f"https://{domain}"
        base = base.rstrip("/")
        return cls(
            authorization_endpoint=f"{base}/oauth/v2/authorize",
            token_endpoint=f"{base}/oauth/v2/token",
            userinfo_endpoint=f"{base}/oidc/v1/userinfo",
            end_session_endpoint=f"{base}/oidc/v1/end_session",
        )


class AuthConfig(BaseModel):
    """Complete configuration for the login flow and the verification gate."""

    provider_domain: str
    client_id: str
    redirect_uri: str
    scope: str = DEFAULT_SCOPE
    post_logout_redirect_uri: str | None = None
    endpoints: ProviderEndpoints | None = None

    verify_url: str | None = None
    verify_timeout: float = Field(default=DEFAULT_VERIFY_TIMEOUT, gt=0)
    verify_ttl: float = Field(default=DEFAULT_VERIFY_TTL, gt=0)

    session_file: str = DEFAULT_SESSION_FILE

    @field_validator("provider_domain", "client_id", "redirect_uri")
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    def model_post_init(self, _context: Any) -> None:
        if self.endpoints is None:
            self.endpoints = ProviderEndpoints.for_domain(self.provider_domain)
        if self.post_logout_redirect_uri is None:
            parsed = urlparse(self.redirect_uri)
            self.post_logout_redirect_uri = f"{parsed.scheme}://{parsed.netloc}/login"

    def require_login_settings(self) -> None:
        """Fail before any redirect if a required value is empty.

        Raises:
            ConfigurationError: If client id or redirect URI is missing
        """
        if not self.client_id:
            raise ConfigurationError("Missing OIDC client id")
        if not self.redirect_uri:
            raise ConfigurationError("Missing OIDC redirect URI")
        if self.endpoints is None or not self.endpoints.authorization_endpoint:
            raise ConfigurationError("Missing OIDC authorization endpoint")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AuthConfig:
        """Build configuration from ``ARLO_*`` environment variables.

        Raises:
            ConfigurationError: If a required variable is missing or invalid
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(f"{ENV_PREFIX}{name}")
            return value if value else None

        values = {
            "provider_domain": get("OIDC_DOMAIN"),
            "client_id": get("OIDC_CLIENT_ID"),
            "redirect_uri": get("OIDC_REDIRECT_URI"),
            "scope": get("OIDC_SCOPE"),
            "post_logout_redirect_uri": get("POST_LOGOUT_REDIRECT_URI"),
            "verify_url": get("VERIFY_URL"),
            "verify_timeout": get("VERIFY_TIMEOUT"),
            "verify_ttl": get("VERIFY_TTL"),
            "session_file": get("SESSION_FILE"),
        }

        missing = [
            f"{ENV_PREFIX}{var}"
            for var, key in (
                ("OIDC_DOMAIN", "provider_domain"),
                ("OIDC_CLIENT_ID", "client_id"),
                ("OIDC_REDIRECT_URI", "redirect_uri"),
            )
            if values[key] is None
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

        try:
            return cls(**{k: v for k, v in values.items() if v is not None})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
