"""HTTP surface for the login flow.

Routes:
- ``GET /login``: start a login and redirect to the identity provider
- ``GET /auth/callback``: finish a login from the provider's redirect
- ``POST /logout``: end the session and return to ``/login``
- ``GET /verify``: run the network-verification gate
- ``GET /``: guarded; requires a session and, when configured, verification

The server is single-user and local-only: it holds one process-wide session,
pending login and verification flag shared by every client that can reach it.
Keep it bound to 127.0.0.1; never expose it on 0.0.0.0.
"""

from __future__ import annotations

import asyncio
import html
import logging
from urllib.parse import urlparse

import uvicorn
from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from arlo.auth.auth_client import AuthContext, AuthService
from arlo.auth.config import AuthConfig
from arlo.auth.models.errors import AuthError
from arlo.auth.models.flow import AuthorizationResponse
from arlo.auth.navigation import CapturingNavigator

logger = logging.getLogger(__name__)

SUCCESS_REDIRECT_DELAY = 1.5
FAILURE_REDIRECT_DELAY = 3

_PAGE = """<!doctype html>
<html>
<head><meta http-equiv="refresh" content="{delay};url={target}"><title>Arlo</title></head>
<body><h1>{title}</h1><p>{message}</p></body>
</html>
"""


def _status_page(
    title: str, message: str, target: str, delay: float, status_code: int = 200
) -> HTMLResponse:
    return HTMLResponse(
        _PAGE.format(
            delay=delay,
            target=html.escape(target, quote=True),
            title=html.escape(title),
            message=html.escape(message),
        ),
        status_code=status_code,
    )


class AuthHttpServer:
    """Starlette app exposing login, callback, logout and verification routes."""

    def __init__(
        self,
        auth_service: AuthService,
        host: str = "127.0.0.1",
        port: int = 8000,
        callback_path: str | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            auth_service: Service handling the login flow
            host: Interface to bind
            port: Port to bind
            callback_path: Route for the provider redirect; defaults to the
                path of the configured redirect URI
        """
        self.host = host
        self.port = port
        self.auth_service = auth_service
        self.context = AuthContext(auth_service)

        callback_path = callback_path or (
            urlparse(auth_service.config.redirect_uri).path or "/auth/callback"
        )

        self._app = Starlette(
            routes=[
                Route("/", self._handle_home, methods=["GET"]),
                Route("/login", self._handle_login, methods=["GET"]),
                Route(callback_path, self._handle_callback, methods=["GET"]),
                Route("/logout", self._handle_logout, methods=["POST"]),
                Route("/verify", self._handle_verify, methods=["GET"]),
            ]
        )
        self._server: uvicorn.Server | None = None

    @property
    def app(self) -> Starlette:
        return self._app

    async def start(self) -> None:
        """Start the HTTP server in a background task."""
        config = uvicorn.Config(
            app=self._app, host=self.host, port=self.port, log_level="info"
        )
        self._server = uvicorn.Server(config)

        asyncio.create_task(self._server.serve())
        logger.info(f"Auth server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the HTTP server and release the auth service."""
        if self._server:
            self._server.should_exit = True
            await self._server.shutdown()
        await self.auth_service.close()

    async def _handle_home(self, request: Request) -> Response:
        user = self.context.user
        if user is None:
            return RedirectResponse("/login", status_code=302)
        if not self.context.can_access():
            return JSONResponse(
                {"error": "Network access denied", "verified": False},
                status_code=403,
            )
        return JSONResponse({"user": user.public_profile()})

    async def _handle_login(self, request: Request) -> Response:
        navigator = CapturingNavigator()
        try:
            await self.context.login(navigator)
        except AuthError as e:
            return _status_page(
                "Authentication Failed", str(e), "/login", FAILURE_REDIRECT_DELAY, 500
            )
        return RedirectResponse(navigator.url, status_code=302)

    async def _handle_callback(self, request: Request) -> Response:
        auth_response = AuthorizationResponse.from_query(dict(request.query_params))
        try:
            await self.auth_service.flow_manager.handle_callback_response(
                auth_response
            )
        except AuthError as e:
            logger.warning(f"Authentication callback failed: {e}")
            return _status_page(
                "Authentication Failed",
                str(e),
                "/login",
                FAILURE_REDIRECT_DELAY,
                status_code=400,
            )
        except Exception as e:
            logger.error(f"Error handling authentication callback: {e}")
            return Response("Internal server error", status_code=500)

        self.context.refresh_session()
        return _status_page(
            "Welcome to Arlo!",
            "Authentication successful. Redirecting...",
            "/",
            SUCCESS_REDIRECT_DELAY,
        )

    async def _handle_logout(self, request: Request) -> Response:
        await self.context.logout()
        return RedirectResponse("/login", status_code=303)

    async def _handle_verify(self, request: Request) -> Response:
        try:
            await self.context.verify_network_access()
        except AuthError as e:
            return JSONResponse({"verified": False, "error": str(e)}, status_code=403)
        return JSONResponse({"verified": True})


async def main(host: str = "127.0.0.1", port: int = 8000) -> None:
    logging.basicConfig(level=logging.INFO)
    server = AuthHttpServer(AuthService(AuthConfig.from_env()), host=host, port=port)
    await server.start()

    try:
        while True:
            await asyncio.sleep(1)
    finally:
        await server.stop()


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(main())
