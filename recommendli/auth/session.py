from __future__ import annotations

from datetime import timezone

from recommendli.auth.codec import encode_credential
from recommendli.auth.models import Credential

COOKIE_STATE = "recommendli_authstate"
COOKIE_GOTO = "recommendli_goto"
COOKIE_SPOTIFY_TOKEN = "recommendli_spotifytoken"

HANDSHAKE_TTL_SECONDS = 60 * 60


def _cookie_kwargs(key: str, value: str) -> dict:
    return {
        "key": key,
        "value": value,
        "httponly": True,
        "secure": True,
        "samesite": "lax",
        "path": "/",
    }


def state_cookie_kwargs(value: str) -> dict:
    return {**_cookie_kwargs(COOKIE_STATE, value), "max_age": HANDSHAKE_TTL_SECONDS}


def goto_cookie_kwargs(value: str) -> dict:
    return {**_cookie_kwargs(COOKIE_GOTO, value), "max_age": HANDSHAKE_TTL_SECONDS}


def credential_cookie_kwargs(credential: Credential) -> dict:
    kwargs = _cookie_kwargs(COOKIE_SPOTIFY_TOKEN, encode_credential(credential))
    # The cookie lives exactly as long as the token it carries.
    if credential.expiry is not None:
        kwargs["expires"] = credential.expiry.astimezone(timezone.utc)
    return kwargs


def clear_cookie_kwargs(key: str) -> dict:
    return {**_cookie_kwargs(key, ""), "max_age": 0}
