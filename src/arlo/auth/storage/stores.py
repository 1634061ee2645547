"""Typed stores over key/value storage.

Each store owns its own keys and clearing rules so the durable session,
the single-use pending flow and the TTL'd verification flag cannot be
mixed up:

- ``PersistedSessionStore``: durable, cleared only on logout or expiry
- ``PendingFlowStore``: short-lived, cleared exactly once on callback
- ``VerificationFlagStore``: short-lived, valid only until its own expiry
"""

from __future__ import annotations

import logging

from arlo.auth.models.security import PendingFlow
from arlo.auth.models.tokens import AuthUser
from arlo.auth.storage.backends import KeyValueStorage

logger = logging.getLogger(__name__)

SESSION_KEY = "arlo_auth_user"
CODE_VERIFIER_KEY = "pkce_code_verifier"
STATE_KEY = "oauth_state"
VERIFIED_KEY = "network_verified"
VERIFIED_EXPIRES_AT_KEY = "network_verified_expires_at"


class PersistedSessionStore:
    """Durable slot holding the JSON-serialized ``AuthUser``."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def load(self) -> AuthUser | None:
        """Load the stored session without checking expiry.

        Raises:
            ValueError: If a record exists but is not a valid session
        """
        record = self._storage.get_item(SESSION_KEY)
        if record is None:
            return None
        return AuthUser.model_validate_json(record)

    def save(self, user: AuthUser) -> None:
        self._storage.set_item(SESSION_KEY, user.to_record())

    def clear(self) -> None:
        self._storage.remove_item(SESSION_KEY)


class PendingFlowStore:
    """Single pending-login slot for the PKCE verifier and state.

    A second ``save`` before the callback overwrites the first flow; the
    first callback then fails state validation.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def save(self, pending: PendingFlow) -> None:
        if not pending.code_verifier or not pending.state:
            raise ValueError("Pending flow requires both code_verifier and state")
        self._storage.set_item(CODE_VERIFIER_KEY, pending.code_verifier)
        self._storage.set_item(STATE_KEY, pending.state)

    def peek(self) -> PendingFlow:
        """Read the pending flow without consuming it."""
        return PendingFlow(
            code_verifier=self._storage.get_item(CODE_VERIFIER_KEY),
            state=self._storage.get_item(STATE_KEY),
        )

    def retrieve_and_clear(self) -> PendingFlow:
        """Read and delete the pending flow in one step.

        Synchronous on purpose: no other coroutine can run between the read
        and the delete.
        """
        pending = self.peek()
        self._storage.remove_item(CODE_VERIFIER_KEY)
        self._storage.remove_item(STATE_KEY)
        return pending


class VerificationFlagStore:
    """Network-verification flag with an absolute expiry (epoch ms)."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def set_verified(self, expires_at_ms: int) -> None:
        self._storage.set_item(VERIFIED_KEY, "true")
        self._storage.set_item(VERIFIED_EXPIRES_AT_KEY, str(expires_at_ms))

    def clear(self) -> None:
        self._storage.remove_item(VERIFIED_KEY)
        self._storage.remove_item(VERIFIED_EXPIRES_AT_KEY)

    def expires_at(self) -> int | None:
        raw = self._storage.get_item(VERIFIED_EXPIRES_AT_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def is_verified(self, now: float) -> bool:
        """Check the flag and its expiry; an expired flag is cleared.

        Args:
            now: Current time as epoch seconds
        """
        if self._storage.get_item(VERIFIED_KEY) != "true":
            return False

        expires_at = self.expires_at()
        if expires_at is None or int(now * 1000) >= expires_at:
            logger.debug("Network verification flag expired")
            self.clear()
            return False

        return True
