"""
Pytest config.

Local imports like `import recommendli` rely on the repo root being on sys.path. When invoking
a global `pytest` entrypoint without an editable install that doesn't happen reliably during
collection, so we pin the behavior here.
"""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from http.cookies import Morsel, SimpleCookie
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlencode

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from recommendli.auth.adaptor import AuthAdaptor  # noqa: E402
from recommendli.auth.config import load_auth_config  # noqa: E402
from recommendli.auth.models import Credential  # noqa: E402
from recommendli.providers.spotify_provider import SpotifyClient, TokenExchangeError  # noqa: E402

CALLBACK_URL = "http://localhost:9999/recommendli/v1/auth/callback"
UI_REDIRECT_URL = "http://localhost:9999/recommendli/v1/auth/redirect"
AUTHORIZE_URL = "https://accounts.example.test/authorize"


class FakeAuthenticator:
    """In-memory authenticator: no network, records every exchange and client it builds."""

    def __init__(self, credential: Optional[Credential] = None, error: Optional[Exception] = None) -> None:
        self.credential = credential or Credential(
            access_token="access-123",
            token_type="Bearer",
            refresh_token="refresh-456",
            expiry=datetime.now(timezone.utc).replace(microsecond=0) + timedelta(hours=1),
        )
        self.error = error
        self.exchanges: List[tuple] = []
        self.clients: List[SpotifyClient] = []

    def authorization_url(self, state: str) -> str:
        return f"{AUTHORIZE_URL}?{urlencode({'client_id': 'test-client-id', 'state': state})}"

    def exchange(self, state: str, query: Mapping[str, str]) -> Credential:
        self.exchanges.append((state, dict(query)))
        if self.error is not None:
            raise self.error
        if query.get("state") != state:
            raise TokenExchangeError("spotify: redirect state parameter doesn't match")
        return self.credential

    def new_client(self, credential: Credential) -> SpotifyClient:
        client = SpotifyClient(credential, api_base_url="https://api.example.test/v1")
        self.clients.append(client)
        return client


@pytest.fixture(autouse=True)
def _isolated_auth_env(monkeypatch: pytest.MonkeyPatch) -> Iterable[None]:
    """Start every test from a clean auth environment and an empty config cache."""
    for key in (
        "SPOTIFY_CLIENT_ID",
        "SPOTIFY_CLIENT_SECRET",
        "AUTH_REDIRECT_URL",
        "AUTH_UI_REDIRECT_URL",
        "SPOTIFY_ACCOUNTS_URL",
        "SPOTIFY_API_URL",
        "SPOTIFY_SCOPES",
        "AUTH_TOKEN_EXCHANGE_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(key, raising=False)
    load_auth_config.cache_clear()
    yield
    load_auth_config.cache_clear()


@pytest.fixture
def fake_authenticator() -> FakeAuthenticator:
    return FakeAuthenticator()


@pytest.fixture
def adaptor(fake_authenticator: FakeAuthenticator) -> AuthAdaptor:
    return AuthAdaptor(fake_authenticator, CALLBACK_URL, UI_REDIRECT_URL)


@pytest.fixture
def set_cookies() -> Callable[[Any], Dict[str, List[Morsel]]]:
    """
    Parse Set-Cookie headers into {name: [morsel, ...]}.

    Accepts an httpx response (TestClient) or a Starlette response object.
    """

    def parse(response: Any) -> Dict[str, List[Morsel]]:
        headers = response.headers
        raw = headers.get_list("set-cookie") if hasattr(headers, "get_list") else headers.getlist("set-cookie")
        out: Dict[str, List[Morsel]] = {}
        for header in raw:
            jar: SimpleCookie = SimpleCookie()
            jar.load(header)
            for name, morsel in jar.items():
                out.setdefault(name, []).append(morsel)
        return out

    return parse
