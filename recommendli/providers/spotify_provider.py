"""
Spotify provider: OAuth2 authorization code flow and Web API access.

The authenticator builds authorization URLs and exchanges callback codes for credentials;
clients are built per request from a credential and call the Web API on the user's behalf.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence
from urllib.parse import urlencode

import requests
from pydantic import BaseModel, ConfigDict

from recommendli.auth.models import Credential

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNTS_URL = "https://accounts.spotify.com"
DEFAULT_API_URL = "https://api.spotify.com/v1"
MAX_RETRY_AFTER_SECONDS = 30


class TokenExchangeError(Exception):
    """Authorization code could not be exchanged for a credential."""


class SpotifyError(Exception):
    """Non-successful response from the Spotify Web API."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"spotify: {message} (status={status})")
        self.status = status
        self.message = message


class SpotifyUser(BaseModel):
    """Spotify user profile; unknown fields are kept so the payload can be passed through."""

    model_config = ConfigDict(extra="allow")

    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    product: Optional[str] = None
    uri: Optional[str] = None


class Authenticator(Protocol):
    """Protocol for the OAuth2 side of the provider."""

    def authorization_url(self, state: str) -> str:
        """URL to send the browser to, carrying `state` for the callback to echo back."""
        ...

    def exchange(self, state: str, query: Mapping[str, str]) -> Credential:
        """
        Exchange the callback's authorization code for a credential.

        Args:
            state: State value previously sent in the authorization URL
            query: Callback query parameters (`code`, `state`, optionally `error`)

        Raises:
            TokenExchangeError if the state does not match or the exchange fails
        """
        ...

    def new_client(self, credential: Credential) -> "SpotifyClient":
        ...


class SpotifyAuthenticator:
    """
    Spotify authenticator using client id/secret.

    Token exchange posts to the accounts service with HTTP basic client authentication
    and always runs under `timeout` seconds.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_url: str,
        scopes: Sequence[str],
        *,
        accounts_base_url: str = DEFAULT_ACCOUNTS_URL,
        api_base_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
    ) -> None:
        if not client_id or not client_secret:
            raise ValueError("SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET required")
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url
        self.scopes = list(scopes)
        self.accounts_base_url = accounts_base_url.rstrip("/")
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_url,
            "state": state,
        }
        if self.scopes:
            params["scope"] = " ".join(self.scopes)
        return f"{self.accounts_base_url}/authorize?{urlencode(params)}"

    def exchange(self, state: str, query: Mapping[str, str]) -> Credential:
        if (query.get("state") or "") != state:
            raise TokenExchangeError("spotify: redirect state parameter doesn't match")

        error = query.get("error")
        if error:
            raise TokenExchangeError(f"spotify: authorization failed: {error}")

        code = query.get("code") or ""
        if not code:
            raise TokenExchangeError("spotify: didn't get access code")

        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_url,
        }
        try:
            r = requests.post(
                f"{self.accounts_base_url}/api/token",
                data=payload,
                auth=(self.client_id, self.client_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TokenExchangeError(f"spotify: token request failed: {type(e).__name__}") from e

        if r.status_code >= 400:
            # Avoid leaking sensitive info; include minimal context.
            raise TokenExchangeError(f"spotify: token exchange failed (status={r.status_code})")
        try:
            data = r.json()
        except ValueError as e:
            raise TokenExchangeError("spotify: invalid token response") from e
        if not isinstance(data, dict):
            raise TokenExchangeError("spotify: invalid token response")
        return credential_from_token_response(data)

    def new_client(self, credential: Credential) -> "SpotifyClient":
        return SpotifyClient(credential, api_base_url=self.api_base_url, timeout=self.timeout)


def credential_from_token_response(data: Dict[str, Any], now: Optional[datetime] = None) -> Credential:
    access_token = str(data.get("access_token") or "").strip()
    if not access_token:
        raise TokenExchangeError("spotify: token response missing access_token")

    expiry: Optional[datetime] = None
    expires_in = data.get("expires_in")
    if expires_in not in (None, ""):
        try:
            seconds = int(float(expires_in))
        except (TypeError, ValueError) as e:
            raise TokenExchangeError("spotify: invalid expires_in in token response") from e
        if seconds > 0:
            expiry = (now or datetime.now(timezone.utc)) + timedelta(seconds=seconds)

    return Credential(
        access_token=access_token,
        token_type=str(data.get("token_type") or "Bearer"),
        refresh_token=str(data.get("refresh_token") or "") or None,
        expiry=expiry,
    )


class SpotifyClient:
    """
    Spotify Web API client bound to one user's credential.

    Build one per request; instances are not shared across requests or threads.
    With `auto_retry`, 429 responses are retried after the server's Retry-After delay.
    """

    def __init__(
        self,
        credential: Credential,
        *,
        api_base_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        auto_retry: bool = False,
        max_retries: int = 5,
    ) -> None:
        self.credential = credential
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self.auto_retry = auto_retry
        self.max_retries = max_retries

    def _make_request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers.update(
            {
                "Authorization": self.credential.authorization_header(),
                "Accept": "application/json",
            }
        )
        kwargs["headers"] = headers
        kwargs.setdefault("timeout", self.timeout)

        url = f"{self.api_base_url}/{path.lstrip('/')}"
        retries = 0
        while True:
            response = requests.request(method, url, **kwargs)
            if response.status_code == 429 and self.auto_retry and retries < self.max_retries:
                retries += 1
                delay = _retry_after_seconds(response)
                logger.info(
                    "Spotify rate limited %s %s; retrying in %ss (%d/%d)", method, path, delay, retries, self.max_retries
                )
                time.sleep(delay)
                continue
            break

        if response.status_code == 429 and self.auto_retry:
            logger.warning("Spotify rate limited %s %s; giving up after %d retries", method, path, retries)
        if response.status_code >= 400:
            raise SpotifyError(response.status_code, _error_message(response))
        return response

    def current_user(self) -> SpotifyUser:
        response = self._make_request("GET", "/me")
        return SpotifyUser.model_validate(response.json())


def _retry_after_seconds(response: requests.Response) -> int:
    try:
        return min(max(int(response.headers.get("Retry-After", "1")), 0), MAX_RETRY_AFTER_SECONDS)
    except (TypeError, ValueError):
        return 1


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason or "request failed"
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return str(data.get("error_description") or err)
    return response.reason or "request failed"
