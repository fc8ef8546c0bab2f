from __future__ import annotations

from typing import Optional

from fastapi import Request

from recommendli.auth.models import Credential


def set_session_credential(request: Request, credential: Credential) -> None:
    """Attach a validated credential to the current request only."""
    request.state.spotify_credential = credential


def get_session_credential(request: Request) -> Optional[Credential]:
    """
    Return the credential the session middleware validated for this request, if any.

    Anything other than a Credential on `request.state` is treated as absent.
    """
    credential = getattr(request.state, "spotify_credential", None)
    if isinstance(credential, Credential):
        return credential
    return None
