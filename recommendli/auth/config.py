from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

DEFAULT_SCOPES: Tuple[str, ...] = (
    "user-read-private",
    "playlist-read-private",
    "playlist-modify-private",
    "playlist-modify-public",
    "user-top-read",
    "user-read-currently-playing",
    "user-read-playback-state",
)

_DEFAULT_REDIRECT_URL = "http://localhost:9999/recommendli/v1/auth/callback"
_DEFAULT_UI_REDIRECT_URL = "http://localhost:9999/recommendli/v1/auth/redirect"
_DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class AuthConfig:
    # Spotify application credentials
    spotify_client_id: Optional[str]
    spotify_client_secret: Optional[str]

    # URLs this process exposes
    redirect_url: str  # Registered with Spotify as the OAuth callback
    ui_redirect_url: str  # Login entry point used by the UI (?url=<target>)

    # Provider endpoints (overridable for dev mocks)
    accounts_base_url: str
    api_base_url: str

    scopes: List[str]
    token_exchange_timeout_seconds: float

    @property
    def spotify_enabled(self) -> bool:
        """Spotify login is possible once both client credentials are configured."""
        return bool(self.spotify_client_id and self.spotify_client_secret)


def _parse_scopes(value: str) -> List[str]:
    items = [x.strip() for x in (value or "").replace(",", " ").split()]
    return [x for x in items if x]


def _parse_base_url(value: str, default: str) -> str:
    return ((value or "").strip() or default).rstrip("/")


def _parse_timeout(value: str) -> float:
    try:
        timeout = float((value or "").strip() or _DEFAULT_TIMEOUT_SECONDS)
    except ValueError:
        return _DEFAULT_TIMEOUT_SECONDS
    if timeout <= 0:
        return _DEFAULT_TIMEOUT_SECONDS
    return timeout


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load authentication configuration from environment variables.

    SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET are required to build the auth adaptor;
    everything else has a local-development default.
    """
    scopes = _parse_scopes(os.getenv("SPOTIFY_SCOPES", "")) or list(DEFAULT_SCOPES)

    return AuthConfig(
        spotify_client_id=(os.getenv("SPOTIFY_CLIENT_ID", "") or "").strip() or None,
        spotify_client_secret=(os.getenv("SPOTIFY_CLIENT_SECRET", "") or "").strip() or None,
        redirect_url=(os.getenv("AUTH_REDIRECT_URL", "") or "").strip() or _DEFAULT_REDIRECT_URL,
        ui_redirect_url=(os.getenv("AUTH_UI_REDIRECT_URL", "") or "").strip() or _DEFAULT_UI_REDIRECT_URL,
        accounts_base_url=_parse_base_url(os.getenv("SPOTIFY_ACCOUNTS_URL", ""), "https://accounts.spotify.com"),
        api_base_url=_parse_base_url(os.getenv("SPOTIFY_API_URL", ""), "https://api.spotify.com/v1"),
        scopes=scopes,
        token_exchange_timeout_seconds=_parse_timeout(os.getenv("AUTH_TOKEN_EXCHANGE_TIMEOUT_SECONDS", "")),
    )
