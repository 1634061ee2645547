"""Network-verification gate.

A coarser access check than the OIDC session: the verification endpoint is
only reachable from the private network. A successful call sets a flag that
is valid for a limited window; consumers always re-check its expiry.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from arlo.auth.config import DEFAULT_VERIFY_TIMEOUT, DEFAULT_VERIFY_TTL
from arlo.auth.models.errors import ConfigurationError, NetworkVerificationError
from arlo.auth.primitives.clock import Clock
from arlo.auth.storage.stores import VerificationFlagStore

logger = logging.getLogger(__name__)


class NetworkVerificationGate:
    """Calls the verification endpoint and keeps the TTL'd verified flag."""

    def __init__(
        self,
        verify_url: str | None,
        flag_store: VerificationFlagStore,
        clock: Clock,
        http_client: httpx.AsyncClient,
        timeout: float = DEFAULT_VERIFY_TIMEOUT,
        ttl: float = DEFAULT_VERIFY_TTL,
    ):
        """Initialize the gate.

        Args:
            verify_url: Verification endpoint; None disables the gate
            flag_store: Storage for the verified flag
            clock: Time source for the flag expiry
            http_client: Shared HTTP client
            timeout: Seconds before the verification request is abandoned
            ttl: Seconds a successful verification stays valid
        """
        self.verify_url = verify_url
        self.timeout = timeout
        self.ttl = ttl
        self._flags = flag_store
        self._clock = clock
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return bool(self.verify_url)

    async def verify(self) -> None:
        """Contact the verification endpoint and record the outcome.

        Raises:
            ConfigurationError: If no verification URL is configured
            NetworkVerificationError: If the endpoint denies access, times out
                or cannot be reached; any stored flag is cleared first
        """
        if not self.verify_url:
            raise ConfigurationError("Network verification URL is not configured")

        logger.debug(f"Verifying network access via {self.verify_url}")

        # Total deadline; httpx.Timeout alone limits each phase separately
        try:
            response = await asyncio.wait_for(
                self._http_client.get(
                    self.verify_url,
                    headers={"Content-Type": "application/json"},
                    timeout=httpx.Timeout(self.timeout),
                ),
                self.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            self._flags.clear()
            logger.warning(f"Network verification timed out after {self.timeout}s")
            raise NetworkVerificationError(
                f"Network verification timed out after {self.timeout}s"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._flags.clear()
            logger.warning(f"Network verification failed: {e}")
            raise NetworkVerificationError(f"Network verification failed: {e}") from e

        if not response.is_success:
            self._flags.clear()
            logger.warning(f"Network verification denied with {response.status_code}")
            raise NetworkVerificationError(
                f"Network access denied (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        expires_at = int((self._clock.now() + self.ttl) * 1000)
        self._flags.set_verified(expires_at)
        logger.info("Network verification succeeded")

    def is_verified(self) -> bool:
        """True while a successful verification is inside its window."""
        return self._flags.is_verified(self._clock.now())

    def reset(self) -> None:
        self._flags.clear()
