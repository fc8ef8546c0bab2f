"""
Spotify auth adaptor.

Moves a browser through anonymous -> pending authorization -> authenticated -> expired using
cookies only:

- `begin_authorization` sets the state + goto cookies and redirects to Spotify.
- `handle_callback` consumes the state cookie (single use), exchanges the code and stores the
  credential cookie, then replays the goto target.
- `session_middleware` gates protected endpoints; a missing, corrupt or expired credential is
  never an error, it just restarts the flow.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence
from urllib.parse import urlparse

from fastapi import Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from recommendli.api.responses import internal_server_error, json_error
from recommendli.auth.codec import CookieDecodeError, decode_credential, escape, unescape
from recommendli.auth.config import DEFAULT_SCOPES, AuthConfig
from recommendli.auth.deps import get_session_credential, set_session_credential
from recommendli.auth.models import Credential
from recommendli.auth.session import (
    COOKIE_GOTO,
    COOKIE_SPOTIFY_TOKEN,
    COOKIE_STATE,
    clear_cookie_kwargs,
    credential_cookie_kwargs,
    goto_cookie_kwargs,
    state_cookie_kwargs,
)
from recommendli.auth.util import new_state_token
from recommendli.providers.spotify_provider import (
    DEFAULT_ACCOUNTS_URL,
    DEFAULT_API_URL,
    Authenticator,
    SpotifyAuthenticator,
    SpotifyClient,
    TokenExchangeError,
)

logger = logging.getLogger(__name__)

Endpoint = Callable[[Request], Awaitable[Response]]


class NotAuthenticatedError(Exception):
    """No validated credential is attached to the request."""

    def __init__(self, message: str = "No authentication found") -> None:
        super().__init__(message)


def _request_target(request: Request) -> str:
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    return target


def _apply_cookies(response: Response, cookies: List[dict]) -> Response:
    for kwargs in cookies:
        response.set_cookie(**kwargs)
    return response


class AuthAdaptor:
    def __init__(
        self,
        authenticator: Authenticator,
        redirect_url: str,
        ui_redirect_url: str,
        log: Optional[logging.Logger] = None,
        *,
        exchange_timeout: float = 10.0,
    ) -> None:
        self.authenticator = authenticator
        self.redirect_url = redirect_url
        self.ui_redirect_url = ui_redirect_url
        self.log = log or logger
        self.exchange_timeout = exchange_timeout

    @classmethod
    def from_config(cls, cfg: AuthConfig, log: Optional[logging.Logger] = None) -> "AuthAdaptor":
        if not cfg.spotify_enabled:
            raise ValueError("SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET required")
        return new_spotify_auth_adaptor(
            cfg.spotify_client_id or "",
            cfg.spotify_client_secret or "",
            cfg.redirect_url,
            cfg.ui_redirect_url,
            log,
            scopes=cfg.scopes,
            accounts_base_url=cfg.accounts_base_url,
            api_base_url=cfg.api_base_url,
            timeout=cfg.token_exchange_timeout_seconds,
        )

    def callback_path(self) -> str:
        return urlparse(self.redirect_url).path or "/"

    def ui_redirect_path(self) -> str:
        return urlparse(self.ui_redirect_url).path or "/"

    def begin_authorization(self, current_url: str) -> RedirectResponse:
        """Start a fresh handshake; the browser comes back to `current_url` once it completes."""
        state = new_state_token()

        resp = RedirectResponse(url=self.authenticator.authorization_url(state), status_code=307)
        resp.headers["Cache-Control"] = "no-store"
        resp.set_cookie(**state_cookie_kwargs(escape(state)))
        resp.set_cookie(**goto_cookie_kwargs(escape(current_url)))
        return resp

    async def handle_callback(self, request: Request) -> Response:
        raw_state = request.cookies.get(COOKIE_STATE) or ""
        if not raw_state:
            # TODO: answer 400 instead once the UI handles an expired handshake itself.
            self.log.error("Missing required cookie %s", COOKIE_STATE)
            return internal_server_error()

        # The state cookie is single use: it is cleared on every exit path from here on.
        cookies: List[dict] = [clear_cookie_kwargs(COOKIE_STATE)]
        try:
            response = await self._complete_callback(request, raw_state, cookies)
        except Exception:
            self.log.exception("Unexpected error handling Spotify callback")
            response = internal_server_error()
        return _apply_cookies(response, cookies)

    async def _complete_callback(self, request: Request, raw_state: str, cookies: List[dict]) -> Response:
        try:
            state = unescape(raw_state)
        except CookieDecodeError as e:
            self.log.error("Failed to unescape state: %s", e)
            return internal_server_error()

        try:
            credential = await asyncio.wait_for(
                asyncio.to_thread(self.authenticator.exchange, state, dict(request.query_params)),
                timeout=self.exchange_timeout,
            )
        except asyncio.TimeoutError:
            self.log.error("Token exchange timed out after %.1fs", self.exchange_timeout)
            return internal_server_error()
        except TokenExchangeError as e:
            self.log.error("Failed to get token: %s", e)
            return internal_server_error()

        try:
            cookies.append(credential_cookie_kwargs(credential))
        except (TypeError, ValueError) as e:
            self.log.error("Failed to marshal token: %s", e)
            return internal_server_error()

        raw_goto = request.cookies.get(COOKIE_GOTO) or ""
        if raw_goto:
            cookies.append(clear_cookie_kwargs(COOKIE_GOTO))
            try:
                redirect_to = unescape(raw_goto)
            except CookieDecodeError as e:
                self.log.error("Failed to unescape goto target: %s", e)
                return internal_server_error()
            resp = RedirectResponse(url=redirect_to, status_code=307)
            resp.headers["Cache-Control"] = "no-store"
            return resp

        return PlainTextResponse("OK")

    async def begin_from_query(self, request: Request) -> Response:
        redirect_to = request.query_params.get("url") or ""
        if not redirect_to:
            self.log.warning("No url provided, cannot redirect client")
            return json_error("url is a required paramter", status=400)
        return self.begin_authorization(redirect_to)

    def _session_credential(self, request: Request) -> Optional[Credential]:
        raw = request.cookies.get(COOKIE_SPOTIFY_TOKEN) or ""
        if not raw:
            return None
        try:
            credential = decode_credential(raw)
        except CookieDecodeError as e:
            self.log.warning("Failed to decode token cookie: %s", e)
            return None
        if not credential.valid():
            return None
        return credential

    def session_middleware(self) -> Callable[[Endpoint], Endpoint]:
        """
        Wrap an endpoint so it only runs with a valid Spotify credential.

        Missing, corrupt and expired credentials all redirect to Spotify with the current
        request as the goto target; the wrapped endpoint is not called in that case.
        """

        def middleware(endpoint: Endpoint) -> Endpoint:
            async def gated(request: Request) -> Response:
                credential = self._session_credential(request)
                if credential is None:
                    return self.begin_authorization(_request_target(request))
                set_session_credential(request, credential)
                return await endpoint(request)

            return gated

        return middleware

    def extract_client(self, request: Request) -> SpotifyClient:
        credential = get_session_credential(request)
        if credential is None:
            raise NotAuthenticatedError()
        client = self.authenticator.new_client(credential)
        client.auto_retry = True
        return client


def new_spotify_auth_adaptor(
    client_id: str,
    client_secret: str,
    redirect_url: str,
    ui_redirect_url: str,
    log: Optional[logging.Logger] = None,
    *,
    scopes: Sequence[str] = DEFAULT_SCOPES,
    accounts_base_url: str = DEFAULT_ACCOUNTS_URL,
    api_base_url: str = DEFAULT_API_URL,
    timeout: float = 10.0,
) -> AuthAdaptor:
    authenticator = SpotifyAuthenticator(
        client_id,
        client_secret,
        redirect_url,
        scopes,
        accounts_base_url=accounts_base_url,
        api_base_url=api_base_url,
        timeout=timeout,
    )
    return AuthAdaptor(authenticator, redirect_url, ui_redirect_url, log, exchange_timeout=timeout)
