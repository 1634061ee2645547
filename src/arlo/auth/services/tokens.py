"""Identity provider endpoint calls: token exchange, user info, end session.

Implements the RFC 6749 token request with the PKCE code_verifier
(RFC 7636), the OIDC user-info request and RP-initiated logout.
No call is retried; failures are raised to the caller.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from arlo.auth.config import ProviderEndpoints
from arlo.auth.models.errors import TokenError, TokenExchangeError, UserInfoError
from arlo.auth.models.tokens import (
    EndSessionRequest,
    TokenRequest,
    TokenResponse,
    UserInfo,
)

logger = logging.getLogger(__name__)


class OIDCTokenManager:
    """Talks to the identity provider's token, user-info and end-session endpoints.

    Uses application/x-www-form-urlencoded encoding for the token request as
    required by RFC 6749. No timeout is applied unless one is configured on
    the HTTP client.
    """

    def __init__(
        self,
        endpoints: ProviderEndpoints,
        client_id: str,
        redirect_uri: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        """Initialize the token manager.

        Args:
            endpoints: Identity provider endpoints
            client_id: Registered OIDC client identifier
            redirect_uri: Redirect URI used when the login was started
            http_client: Shared HTTP client; one is created when omitted
            timeout: Timeout for a client created here (None disables it)
        """
        self.endpoints = endpoints
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_tokens(
        self, code: str, code_verifier: str
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Implements RFC 6749 Section 4.1.3 - Access Token Request, with the
        PKCE code_verifier proving possession of the original request.

        Args:
            code: Authorization code from the callback
            code_verifier: Verifier stored when the login was started

        Returns:
            TokenResponse: Parsed successful token response

        Raises:
            TokenExchangeError: If the endpoint rejects the request or the
                response cannot be parsed
        """
        token_request = TokenRequest(
            token_endpoint=self.endpoints.token_endpoint,
            code=code,
            redirect_uri=self.redirect_uri,
            client_id=self.client_id,
            code_verifier=code_verifier,
        )
        form_data = token_request.to_form_data()

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request to {token_request.token_endpoint}: "
            f"grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"HTTP error during token exchange: {e}") from e

        if not response.is_success:
            body = response.text
            logger.warning(f"Token exchange failed with {response.status_code}")
            raise TokenExchangeError(
                f"Token exchange failed: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            token_response = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TokenExchangeError(f"Invalid token response format: {e}") from e

        logger.info("Token exchange successful")
        return token_response

    async def fetch_user_info(self, access_token: str) -> UserInfo:
        """Fetch the signed-in user's claims with a bearer token.

        Raises:
            UserInfoError: If the endpoint rejects the token or is unreachable
        """
        try:
            response = await self._http_client.get(
                self.endpoints.userinfo_endpoint,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise UserInfoError(f"Failed to fetch user information: {e}") from e

        if not response.is_success:
            logger.warning(f"User info request failed with {response.status_code}")
            raise UserInfoError("Failed to fetch user information")

        try:
            return UserInfo.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UserInfoError(f"Invalid user information response: {e}") from e

    async def end_session(
        self, id_token_hint: str, post_logout_redirect_uri: str
    ) -> None:
        """Notify the provider's end-session endpoint.

        Raises:
            TokenError: If the request fails; callers treat this as best effort
        """
        request = EndSessionRequest(
            end_session_endpoint=self.endpoints.end_session_endpoint,
            id_token_hint=id_token_hint,
            post_logout_redirect_uri=post_logout_redirect_uri,
        )

        try:
            response = await self._http_client.get(request.build_url())
        except httpx.HTTPError as e:
            raise TokenError(f"HTTP error during end session: {e}") from e

        # Providers answer with a redirect to post_logout_redirect_uri
        if response.is_error:
            raise TokenError(f"End session failed with {response.status_code}")

        logger.debug("Identity provider session ended")

    async def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client:
            await self._http_client.aclose()
