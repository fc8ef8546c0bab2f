"""
Cookie value codec.

Credentials are stored as base64(JSON) using the standard alphabet; free-form values (state token,
goto URL) are query-escaped.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote_plus, unquote_plus

from dateutil import parser as date_parser

from recommendli.auth.models import Credential

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class CookieDecodeError(ValueError):
    """Cookie value could not be decoded."""


def _format_expiry(expiry: datetime) -> str:
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_expiry(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise CookieDecodeError("credential expiry must be a string")
    try:
        dt = date_parser.isoparse(value)
    except (ValueError, TypeError, OverflowError) as e:
        raise CookieDecodeError(f"invalid credential expiry: {value!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    # Year 1 is the zero time written by clients that always emit the field.
    if dt.year == 1:
        return None
    return dt


def encode_credential(credential: Credential) -> str:
    payload: Dict[str, Any] = {"access_token": credential.access_token}
    if credential.token_type:
        payload["token_type"] = credential.token_type
    if credential.refresh_token:
        payload["refresh_token"] = credential.refresh_token
    if credential.expiry is not None:
        payload["expiry"] = _format_expiry(credential.expiry)
    raw = json.dumps(payload, separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_credential(value: str) -> Credential:
    try:
        raw = base64.b64decode((value or "").encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise CookieDecodeError("credential cookie is not valid base64") from e

    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as e:
        raise CookieDecodeError("credential cookie is not valid JSON") from e
    if not isinstance(data, dict):
        raise CookieDecodeError("credential cookie must hold a JSON object")

    access_token = data.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise CookieDecodeError("credential cookie is missing access_token")

    token_type = data.get("token_type")
    refresh_token = data.get("refresh_token")
    return Credential(
        access_token=access_token,
        token_type=str(token_type) if token_type else "",
        refresh_token=str(refresh_token) if refresh_token else None,
        expiry=_parse_expiry(data.get("expiry")),
    )


def escape(value: str) -> str:
    return quote_plus(value, safe="")


def unescape(value: str) -> str:
    m = _BAD_ESCAPE.search(value)
    if m:
        raise CookieDecodeError(f"invalid escape {value[m.start():m.start() + 3]!r}")
    return unquote_plus(value)
