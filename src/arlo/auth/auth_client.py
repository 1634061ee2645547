"""Arlo authentication service and application-wide auth context.

``AuthService`` is the composition root: it is constructed once at startup
with its storage, clock and HTTP client, and passed to whatever needs it.
``AuthContext`` exposes the current authentication state to the rest of
the application and mediates login, logout and verification.
"""

from __future__ import annotations

import logging

import httpx

from arlo.auth.config import AuthConfig
from arlo.auth.models.errors import AuthError
from arlo.auth.models.tokens import AuthState, AuthUser, TokenResponse, UserInfo
from arlo.auth.navigation import BrowserNavigator, Navigator
from arlo.auth.primitives.clock import Clock, SystemClock
from arlo.auth.services.flow import LoginFlowManager
from arlo.auth.services.session import SessionStore
from arlo.auth.services.tokens import OIDCTokenManager
from arlo.auth.services.verification import NetworkVerificationGate
from arlo.auth.storage.backends import JsonFileStorage, KeyValueStorage, MemoryStorage
from arlo.auth.storage.stores import (
    PendingFlowStore,
    PersistedSessionStore,
    VerificationFlagStore,
)

logger = logging.getLogger(__name__)


class AuthService:
    """OIDC login, session and verification services for one application.

    Owns the OIDC flow: builds the authorization redirect, exchanges the
    authorization code, fetches the user identity, persists and validates
    the session, performs logout and runs the network-verification gate.
    """

    def __init__(
        self,
        config: AuthConfig,
        session_storage: KeyValueStorage | None = None,
        flow_storage: KeyValueStorage | None = None,
        flag_storage: KeyValueStorage | None = None,
        clock: Clock | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        """Initialize the auth service.

        Args:
            config: Identity provider and gate configuration
            session_storage: Durable storage; defaults to ``config.session_file``
            flow_storage: Short-lived storage for the pending PKCE flow
            flag_storage: Short-lived storage for the verification flag
            clock: Time source for expiry checks
            http_client: Shared HTTP client; one is created when omitted
            timeout: Timeout for a client created here (None disables it)
        """
        self.config = config
        self.clock = clock or SystemClock()

        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

        session_storage = session_storage or JsonFileStorage(config.session_file)
        flow_storage = flow_storage or MemoryStorage()
        flag_storage = flag_storage or MemoryStorage()

        self.pending_flows = PendingFlowStore(flow_storage)

        # Initialize service components
        self.token_manager = OIDCTokenManager(
            config.endpoints,
            config.client_id,
            config.redirect_uri,
            http_client=self._http_client,
        )
        self.session_store = SessionStore(
            PersistedSessionStore(session_storage),
            self.clock,
            self.token_manager,
            config.post_logout_redirect_uri,
        )
        self.flow_manager = LoginFlowManager(
            config,
            self.pending_flows,
            self.token_manager,
            self.session_store,
            self.clock,
        )
        self.verification = NetworkVerificationGate(
            config.verify_url,
            VerificationFlagStore(flag_storage),
            self.clock,
            self._http_client,
            timeout=config.verify_timeout,
            ttl=config.verify_ttl,
        )

    async def initiate_login(self, navigator: Navigator | None = None) -> str:
        """Start a login; see ``LoginFlowManager.initiate_login``."""
        return await self.flow_manager.initiate_login(navigator or BrowserNavigator())

    async def handle_callback(
        self,
        code: str | None,
        state: str | None,
        *,
        error: str | None = None,
        error_description: str | None = None,
    ) -> AuthUser:
        return await self.flow_manager.handle_callback(
            code, state, error=error, error_description=error_description
        )

    async def handle_callback_url(self, callback_url: str) -> AuthUser:
        return await self.flow_manager.handle_callback_url(callback_url)

    async def exchange_code_for_tokens(
        self, code: str, code_verifier: str
    ) -> TokenResponse:
        return await self.token_manager.exchange_code_for_tokens(code, code_verifier)

    async def fetch_user_info(self, access_token: str) -> UserInfo:
        return await self.token_manager.fetch_user_info(access_token)

    def get_stored_user(self) -> AuthUser | None:
        return self.session_store.get_stored_user()

    def store_session(self, user: AuthUser) -> None:
        self.session_store.store_session(user)

    def clear_session(self) -> None:
        self.session_store.clear_session()

    def is_authenticated(self) -> bool:
        return self.session_store.is_authenticated()

    async def logout(self, id_token_hint: str | None = None) -> None:
        await self.session_store.logout(id_token_hint)

    async def verify_network(self) -> None:
        await self.verification.verify()

    def is_network_verified(self) -> bool:
        return self.verification.is_verified()

    async def close(self, notification_timeout: float = 2.0) -> None:
        """Let end-session notifications finish, then close the HTTP client."""
        await self.session_store.wait_for_notifications(timeout=notification_timeout)
        if self._owns_client:
            await self._http_client.aclose()


class AuthContext:
    """Application-wide authentication state.

    Session presence and verification are re-read from their stores on every
    access, so expiry takes effect without a background timer.
    """

    def __init__(self, auth_service: AuthService):
        self._service = auth_service
        self._is_loading = False
        self._error: str | None = None

    @property
    def user(self) -> AuthUser | None:
        return self._service.get_stored_user()

    @property
    def state(self) -> AuthState:
        user = self.user
        return AuthState(
            user=user,
            is_authenticated=user is not None,
            network_verified=self._service.is_network_verified(),
            is_loading=self._is_loading,
            error=self._error,
        )

    def can_access(self) -> bool:
        """Session present AND (when the gate is configured) network verified."""
        if self.user is None:
            return False
        if self._service.verification.enabled:
            return self._service.is_network_verified()
        return True

    async def login(self, navigator: Navigator | None = None) -> str:
        self._error = None
        try:
            return await self._service.initiate_login(navigator)
        except AuthError as e:
            self._error = str(e)
            logger.error(f"Login error: {e}")
            raise

    async def complete_login(self, callback_url: str) -> AuthUser:
        """Handle the callback URL and refresh the context from storage."""
        self._is_loading = True
        try:
            user = await self._service.handle_callback_url(callback_url)
        except AuthError as e:
            self._error = str(e)
            logger.error(f"Authentication callback failed: {e}")
            raise
        finally:
            self._is_loading = False

        self.refresh_session()
        return user

    async def logout(self) -> None:
        user = self.user
        await self._service.logout(user.id_token if user else None)
        self._error = None

    def refresh_session(self) -> AuthState:
        """Re-read the stored session and clear any previous error."""
        self._error = None
        return self.state

    async def verify_network_access(self) -> bool:
        """Run the verification gate; a failure leaves the context denied."""
        self._is_loading = True
        try:
            await self._service.verify_network()
        except AuthError as e:
            self._error = str(e)
            raise
        finally:
            self._is_loading = False

        self._error = None
        return True

    def reset_network_verification(self) -> None:
        self._service.verification.reset()
