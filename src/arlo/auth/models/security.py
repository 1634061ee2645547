"""Security-related models for the PKCE login flow.

Contains PKCE parameters and the pending-flow record that survives the
round trip through the identity provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) material for one login attempt.

    Immutable parameters generated right before redirecting to the identity
    provider (RFC 7636). Single use: the verifier and state are consumed by
    the callback.
    """

    code_verifier: str = field()
    code_challenge: str = field()
    state: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not (43 <= len(self.code_challenge) <= 128):
            raise ValueError("code_challenge must be 43-128 characters")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
        if not self.state:
            raise ValueError("state must not be empty")
        if self.state == self.code_verifier:
            raise ValueError("state must be independent of code_verifier")

    def pending_flow(self) -> PendingFlow:
        """The part of these parameters that is stored until the callback."""
        return PendingFlow(code_verifier=self.code_verifier, state=self.state)


@dataclass(frozen=True)
class PendingFlow:
    """Verifier and state retrieved (and cleared) on callback.

    Either value may be missing when the storage scope was cleared, the
    flow was already consumed, or no login was started here.
    """

    code_verifier: str | None = None
    state: str | None = None
