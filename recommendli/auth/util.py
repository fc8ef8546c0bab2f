from __future__ import annotations

import base64
import os


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def random_token(nbytes: int = 32) -> str:
    return b64url(os.urandom(nbytes))


def new_state_token() -> str:
    """
    Anti-forgery token for one authorization round trip.

    Sent to Spotify as `state` and kept in the state cookie until the callback consumes it.
    """
    return random_token(32)
