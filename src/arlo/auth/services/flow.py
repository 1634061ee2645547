"""Authorization code flow with PKCE: login initiation and callback handling.

Coordinates PKCE generation, the pending-flow slot, state validation
(CSRF protection), token exchange and session creation.
"""

from __future__ import annotations

import logging
import secrets

from arlo.auth.config import AuthConfig
from arlo.auth.models.errors import (
    AuthError,
    AuthorizationError,
    FlowExpiredError,
    MissingAuthorizationCodeError,
    MissingStateError,
    StateValidationError,
)
from arlo.auth.models.flow import AuthorizationRequest, AuthorizationResponse
from arlo.auth.models.tokens import AuthUser
from arlo.auth.navigation import Navigator
from arlo.auth.primitives.clock import Clock
from arlo.auth.primitives.pkce import PKCEManager
from arlo.auth.services.session import SessionStore
from arlo.auth.services.tokens import OIDCTokenManager
from arlo.auth.storage.stores import PendingFlowStore

logger = logging.getLogger(__name__)


def validate_state(expected: str, actual: str) -> None:
    """Validate the callback state byte for byte against the stored state.

    Raises:
        StateValidationError: If the state parameters don't match
    """
    if not secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8")):
        raise StateValidationError("Invalid state parameter - possible CSRF attack")


class LoginFlowManager:
    """Orchestrates the OIDC authorization code flow for Arlo.

    Handles the complete login from redirect to stored session, including:
    - PKCE parameter generation
    - Authorization URL construction
    - Callback validation (provider errors, missing values, state)
    - Token exchange and user-info lookup
    """

    def __init__(
        self,
        config: AuthConfig,
        pending_store: PendingFlowStore,
        token_manager: OIDCTokenManager,
        session_store: SessionStore,
        clock: Clock,
        pkce_manager: PKCEManager | None = None,
    ):
        self.config = config
        self._pending = pending_store
        self._token_manager = token_manager
        self._session_store = session_store
        self._clock = clock
        self._pkce_manager = pkce_manager or PKCEManager()

    async def initiate_login(self, navigator: Navigator) -> str:
        """Start a login by redirecting to the identity provider.

        Generates and stores the PKCE material, builds the authorization URL
        and hands it to the navigator. Nothing is navigated to unless every
        parameter was generated.

        Args:
            navigator: Performs the redirect

        Returns:
            The authorization URL that was navigated to

        Raises:
            ConfigurationError: If client id or redirect URI is missing
            PKCEError: If verifier, challenge or state generation fails
        """
        self.config.require_login_settings()

        try:
            pkce_params = await self._pkce_manager.generate_parameters()

            # Overwrites any earlier pending login in this storage scope
            self._pending.save(pkce_params.pending_flow())

            auth_request = AuthorizationRequest(
                authorization_endpoint=self.config.endpoints.authorization_endpoint,
                client_id=self.config.client_id,
                redirect_uri=self.config.redirect_uri,
                code_challenge=pkce_params.code_challenge,
                code_challenge_method=pkce_params.code_challenge_method,
                state=pkce_params.state,
                scope=self.config.scope,
            )
            authorization_url = auth_request.build_authorization_url()

        except AuthError:
            raise
        except Exception as e:
            raise AuthError(f"Failed to start authentication process: {e}") from e

        logger.info(f"Generated authorization URL for client {self.config.client_id}")

        await navigator.navigate(authorization_url)
        return authorization_url

    async def handle_callback(
        self,
        code: str | None,
        state: str | None,
        *,
        error: str | None = None,
        error_description: str | None = None,
    ) -> AuthUser:
        """Validate the callback, exchange the code and store the session.

        The pending PKCE flow is consumed on entry, so it is gone whatever
        the outcome and a replayed callback fails as expired.

        Args:
            code: Authorization code from the callback query
            state: State from the callback query
            error: OAuth error code reported by the provider, if any
            error_description: Human-readable provider error, if any

        Returns:
            AuthUser: The newly stored session

        Raises:
            AuthorizationError: If the provider reported an error
            MissingAuthorizationCodeError: If no code was received
            MissingStateError: If no state was received
            FlowExpiredError: If no pending verifier or state is stored
            StateValidationError: If the state does not match (possible CSRF)
            TokenExchangeError: If the token endpoint rejects the code
            UserInfoError: If the user-info endpoint rejects the token
        """
        pending = self._pending.retrieve_and_clear()

        logger.debug(
            f"Processing callback: code={'present' if code else 'missing'}, "
            f"state={'present' if state else 'missing'}, "
            f"stored_verifier={'present' if pending.code_verifier else 'missing'}, "
            f"stored_state={'present' if pending.state else 'missing'}"
        )

        if error:
            logger.warning(f"Identity provider returned error: {error}")
            raise AuthorizationError(
                error_description or f"Authentication failed: {error}", error=error
            )

        if not code:
            raise MissingAuthorizationCodeError("Authorization code not received")
        if not state:
            raise MissingStateError("State parameter missing")

        if not pending.code_verifier:
            raise FlowExpiredError("Missing code verifier - session may have expired")
        if not pending.state:
            raise FlowExpiredError("Missing stored state - session may have expired")

        try:
            validate_state(pending.state, state)
        except StateValidationError:
            logger.warning("Callback state does not match stored state")
            raise

        token_response = await self._token_manager.exchange_code_for_tokens(
            code, pending.code_verifier
        )
        user_info = await self._token_manager.fetch_user_info(
            token_response.access_token
        )

        user = AuthUser.from_tokens(token_response, user_info, self._clock.now())
        self._session_store.store_session(user)

        logger.info(f"Authentication callback succeeded for user {user.id}")
        return user

    async def handle_callback_url(self, callback_url: str) -> AuthUser:
        """Parse a full callback URL and handle it."""
        return await self.handle_callback_response(
            AuthorizationResponse.from_url(callback_url)
        )

    async def handle_callback_response(
        self, response: AuthorizationResponse
    ) -> AuthUser:
        return await self.handle_callback(
            response.code,
            response.state,
            error=response.error,
            error_description=response.error_description,
        )
