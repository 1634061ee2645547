"""Ways of sending the user to the identity provider's authorization page.

Allows different strategies for the final redirect of a login:
- Open the system browser (desktop and CLI use)
- Capture the URL so an HTTP handler can answer with a redirect
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from typing import Protocol

logger = logging.getLogger(__name__)


class Navigator(Protocol):
    """Performs the full redirect to the authorization URL."""

    async def navigate(self, url: str) -> None: ...


class BrowserNavigator:
    """Opens the authorization URL in the user's web browser."""

    async def navigate(self, url: str) -> None:
        opened = await asyncio.to_thread(webbrowser.open, url)
        if not opened:
            raise RuntimeError(f"Could not open a browser. Please visit {url}")
        logger.debug("Opened authorization URL in browser")


class CapturingNavigator:
    """Records the authorization URL instead of navigating.

    Used by the HTTP login route, which turns the URL into a 302 response.
    """

    def __init__(self) -> None:
        self.url: str | None = None

    async def navigate(self, url: str) -> None:
        self.url = url
