"""Tests for the identity provider endpoint calls."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from arlo.auth.config import ProviderEndpoints
from arlo.auth.models.errors import TokenError, TokenExchangeError, UserInfoError
from arlo.auth.services.tokens import OIDCTokenManager


def mock_response(status_code: int, body=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.is_error = status_code >= 400
    response.text = text
    response.json.return_value = body
    return response


class TestTokenExchange:
    """Test authorization code to token exchange."""

    def setup_method(self):
        # Arrange
        self.token_manager = OIDCTokenManager(
            ProviderEndpoints.for_domain("auth.example.com"),
            client_id="client-456",
            redirect_uri="https://myapp.com/callback",
            http_client=AsyncMock(),
        )
        self.code_verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

    async def test_successful_token_exchange_with_all_fields(self):
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            200,
            {
                "access_token": "access-token-xyz",
                "id_token": "id-token-abc",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "refresh-token-abc",
                "scope": "openid email profile",
            },
        )

        # Act
        token_response = await self.token_manager.exchange_code_for_tokens(
            "auth-code-123", self.code_verifier
        )

        # Assert
        assert token_response.access_token == "access-token-xyz"
        assert token_response.id_token == "id-token-abc"
        assert token_response.expires_in == 3600
        assert token_response.refresh_token == "refresh-token-abc"
        assert token_response.scope == "openid email profile"

        # Verify HTTP request was made correctly
        self.token_manager._http_client.post.assert_awaited_once()
        call_args = self.token_manager._http_client.post.call_args

        assert call_args[0][0] == "https://auth.example.com/oauth/v2/token"

        form_data = call_args[1]["data"]
        assert form_data["grant_type"] == "authorization_code"
        assert form_data["code"] == "auth-code-123"
        assert form_data["redirect_uri"] == "https://myapp.com/callback"
        assert form_data["client_id"] == "client-456"
        assert form_data["code_verifier"] == self.code_verifier

        headers = call_args[1]["headers"]
        assert headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert headers["Accept"] == "application/json"

    async def test_token_type_defaults_to_bearer(self):
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            200, {"access_token": "T", "id_token": "I", "expires_in": 60}
        )

        # Act
        token_response = await self.token_manager.exchange_code_for_tokens(
            "code", self.code_verifier
        )

        # Assert
        assert token_response.token_type == "Bearer"
        assert token_response.refresh_token is None

    async def test_error_status_raises_with_body_verbatim(self):
        # Arrange
        body = '{"error":"invalid_grant","error_description":"code expired"}'
        self.token_manager._http_client.post.return_value = mock_response(
            400, text=body
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code_for_tokens(
                "code", self.code_verifier
            )

        assert exc_info.value.body == body
        assert str(exc_info.value) == f"Token exchange failed: {body}"
        self.token_manager._http_client.post.assert_awaited_once()

    async def test_response_missing_id_token_is_rejected(self):
        # Arrange
        self.token_manager._http_client.post.return_value = mock_response(
            200, {"access_token": "T", "expires_in": 60}
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError, match="Invalid token response format"):
            await self.token_manager.exchange_code_for_tokens(
                "code", self.code_verifier
            )

    async def test_network_error_is_wrapped(self):
        # Arrange
        self.token_manager._http_client.post.side_effect = httpx.ConnectError(
            "Connection refused"
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError, match="HTTP error during token exchange"):
            await self.token_manager.exchange_code_for_tokens(
                "code", self.code_verifier
            )


class TestUserInfo:
    def setup_method(self):
        self.token_manager = OIDCTokenManager(
            ProviderEndpoints.for_domain("auth.example.com"),
            client_id="client-456",
            redirect_uri="https://myapp.com/callback",
            http_client=AsyncMock(),
        )

    async def test_fetch_sends_bearer_token(self):
        # Arrange
        self.token_manager._http_client.get.return_value = mock_response(
            200,
            {
                "sub": "u1",
                "email": "a@b.com",
                "email_verified": True,
                "preferred_username": "ada",
            },
        )

        # Act
        user_info = await self.token_manager.fetch_user_info("access-token-xyz")

        # Assert
        assert user_info.sub == "u1"
        assert user_info.email_verified is True
        assert user_info.preferred_username == "ada"
        call_args = self.token_manager._http_client.get.call_args
        assert call_args[0][0] == "https://auth.example.com/oidc/v1/userinfo"
        assert call_args[1]["headers"]["Authorization"] == "Bearer access-token-xyz"

    async def test_rejected_token_raises(self):
        # Arrange
        self.token_manager._http_client.get.return_value = mock_response(401)

        # Act & Assert
        with pytest.raises(UserInfoError, match="Failed to fetch user information"):
            await self.token_manager.fetch_user_info("expired")


class TestEndSession:
    def setup_method(self):
        self.token_manager = OIDCTokenManager(
            ProviderEndpoints.for_domain("auth.example.com"),
            client_id="client-456",
            redirect_uri="https://myapp.com/callback",
            http_client=AsyncMock(),
        )

    async def test_end_session_url_parameters(self):
        # Arrange
        self.token_manager._http_client.get.return_value = mock_response(302)

        # Act
        await self.token_manager.end_session("id-token", "https://myapp.com/login")

        # Assert
        url = self.token_manager._http_client.get.call_args[0][0]
        assert url.startswith("https://auth.example.com/oidc/v1/end_session?")
        assert "id_token_hint=id-token" in url
        assert "post_logout_redirect_uri=https%3A%2F%2Fmyapp.com%2Flogin" in url

    async def test_end_session_failure_raises(self):
        # Arrange
        self.token_manager._http_client.get.side_effect = httpx.ConnectError("down")

        # Act & Assert
        with pytest.raises(TokenError):
            await self.token_manager.end_session("id-token", "https://myapp.com/login")
