from urllib.parse import parse_qs, urlparse

import pytest

from arlo.auth.auth_client import AuthContext
from arlo.auth.models.errors import NetworkVerificationError, StateValidationError
from arlo.auth.navigation import CapturingNavigator


async def sign_in(context: AuthContext) -> None:
    auth_url = await context.login(CapturingNavigator())
    state = parse_qs(urlparse(auth_url).query)["state"][0]
    await context.complete_login(
        f"https://arlo.example.com/auth/callback?code=abc123&state={state}"
    )


class TestAuthContext:
    def test_initial_state_is_signed_out(self, auth_service):
        # Act
        state = AuthContext(auth_service).state

        # Assert
        assert state.user is None
        assert not state.is_authenticated
        assert not state.network_verified
        assert not state.is_loading
        assert state.error is None

    async def test_sign_in_updates_state(self, auth_service):
        # Arrange
        context = AuthContext(auth_service)

        # Act
        await sign_in(context)

        # Assert
        state = context.state
        assert state.is_authenticated
        assert state.user.email == "a@b.com"
        assert state.error is None

    async def test_failed_callback_records_error(self, auth_service):
        # Arrange
        context = AuthContext(auth_service)
        await context.login(CapturingNavigator())

        # Act & Assert
        with pytest.raises(StateValidationError):
            await context.complete_login(
                "https://arlo.example.com/auth/callback?code=abc123&state=forged"
            )

        assert context.state.error == "Invalid state parameter - possible CSRF attack"
        assert not context.state.is_authenticated
        assert not context.state.is_loading

    async def test_access_requires_session_and_verification(self, auth_service):
        # Arrange
        context = AuthContext(auth_service)

        # Act & Assert
        await context.verify_network_access()
        assert not context.can_access()

        await sign_in(context)
        assert context.can_access()

        context.reset_network_verification()
        assert not context.can_access()

    async def test_access_expires_with_verification_window(self, auth_service, clock):
        # Arrange
        context = AuthContext(auth_service)
        await sign_in(context)
        await context.verify_network_access()

        # Act
        clock.advance(15 * 60)

        # Assert
        assert context.state.is_authenticated
        assert not context.can_access()

    async def test_access_without_configured_gate(self, auth_service):
        # Arrange
        auth_service.verification.verify_url = None
        context = AuthContext(auth_service)

        # Act
        await sign_in(context)

        # Assert
        assert context.can_access()

    async def test_denied_verification_records_error(self, auth_service, provider):
        # Arrange
        provider.verify_status = 403
        context = AuthContext(auth_service)

        # Act & Assert
        with pytest.raises(NetworkVerificationError):
            await context.verify_network_access()

        assert context.state.error is not None
        assert not context.state.network_verified

    async def test_logout_ends_provider_session(self, auth_service, provider):
        # Arrange
        context = AuthContext(auth_service)
        await sign_in(context)

        # Act
        await context.logout()
        await auth_service.session_store.wait_for_notifications()

        # Assert
        assert not context.state.is_authenticated
        [call] = provider.calls_to("/oidc/v1/end_session")
        assert call.url.params["id_token_hint"] == "I"
