"""Session store: exclusive owner of the persisted ``AuthUser``.

Expiry is checked on every read. Logout clears the local session first and
then notifies the identity provider in a detached task whose outcome is
only logged.
"""

from __future__ import annotations

import asyncio
import logging

from arlo.auth.models.tokens import AuthUser
from arlo.auth.primitives.clock import Clock
from arlo.auth.services.tokens import OIDCTokenManager
from arlo.auth.storage.stores import PersistedSessionStore

logger = logging.getLogger(__name__)


class SessionStore:
    """Reads, writes and tears down the persisted session."""

    def __init__(
        self,
        store: PersistedSessionStore,
        clock: Clock,
        token_manager: OIDCTokenManager,
        post_logout_redirect_uri: str,
    ):
        self._store = store
        self._clock = clock
        self._token_manager = token_manager
        self.post_logout_redirect_uri = post_logout_redirect_uri
        self._notifications: set[asyncio.Task[None]] = set()

    def get_stored_user(self) -> AuthUser | None:
        """Return the stored session if present and unexpired.

        An expired or unreadable record is deleted and reported as absent.
        """
        try:
            user = self._store.load()
        except ValueError as e:
            logger.warning(f"Discarding unreadable session record: {e}")
            self._store.clear()
            return None

        if user is None:
            return None

        if user.is_expired(self._clock.now()):
            logger.info("Stored session expired, clearing it")
            self._store.clear()
            return None

        return user

    def store_session(self, user: AuthUser) -> None:
        self._store.save(user)
        logger.info(f"Stored session for user {user.id}")

    def clear_session(self) -> None:
        self._store.clear()
        logger.info("Cleared stored session")

    def is_authenticated(self) -> bool:
        return self.get_stored_user() is not None

    async def logout(self, id_token_hint: str | None = None) -> None:
        """Clear the local session, then best-effort end the provider session.

        Local logout is authoritative: the end-session request runs in a
        background task that is never awaited here, and its failure cannot
        undo the local clear.

        Args:
            id_token_hint: ID token of the session being ended; without it
                the provider is not notified
        """
        self.clear_session()

        if not id_token_hint:
            return

        task = asyncio.create_task(
            self._token_manager.end_session(
                id_token_hint, self.post_logout_redirect_uri
            )
        )
        self._notifications.add(task)
        task.add_done_callback(self._on_notification_done)

    def _on_notification_done(self, task: asyncio.Task[None]) -> None:
        self._notifications.discard(task)
        if task.cancelled():
            logger.debug("End session notification cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"End session notification failed: {exc}")

    @property
    def pending_notifications(self) -> int:
        return len(self._notifications)

    async def wait_for_notifications(self, timeout: float | None = None) -> None:
        """Wait for outstanding end-session notifications to finish."""
        if not self._notifications:
            return
        done, pending = await asyncio.wait(set(self._notifications), timeout=timeout)
        for task in pending:
            task.cancel()
