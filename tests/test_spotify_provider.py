"""
Unit tests for the Spotify provider with mocked HTTP.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from recommendli.auth.models import Credential
from recommendli.providers.spotify_provider import (
    MAX_RETRY_AFTER_SECONDS,
    SpotifyAuthenticator,
    SpotifyClient,
    SpotifyError,
    TokenExchangeError,
    credential_from_token_response,
)


def _authenticator(**kwargs) -> SpotifyAuthenticator:
    return SpotifyAuthenticator(
        "client-id",
        "client-secret",
        "http://localhost:9999/recommendli/v1/auth/callback",
        ["user-read-private", "user-top-read"],
        **kwargs,
    )


_RATE_LIMITED = {"error": {"status": 429, "message": "API rate limit exceeded"}}


def _response(status_code: int, payload=None, headers=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = headers or {}
    resp.reason = "Error" if status_code >= 400 else "OK"
    resp.json.return_value = payload
    return resp


def test_authenticator_requires_client_credentials() -> None:
    with pytest.raises(ValueError, match="SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET required"):
        SpotifyAuthenticator("", "secret", "http://localhost/cb", [])


def test_authorization_url_carries_state_and_scopes() -> None:
    url = urlparse(_authenticator().authorization_url("state-abc"))
    assert f"{url.scheme}://{url.netloc}{url.path}" == "https://accounts.spotify.com/authorize"

    q = parse_qs(url.query)
    assert q["client_id"] == ["client-id"]
    assert q["response_type"] == ["code"]
    assert q["redirect_uri"] == ["http://localhost:9999/recommendli/v1/auth/callback"]
    assert q["scope"] == ["user-read-private user-top-read"]
    assert q["state"] == ["state-abc"]


def test_authorization_url_respects_accounts_override() -> None:
    url = _authenticator(accounts_base_url="http://localhost:19480/").authorization_url("s")
    assert url.startswith("http://localhost:19480/authorize?")


def test_exchange_rejects_state_mismatch_without_network() -> None:
    with patch("requests.post") as mock_post:
        with pytest.raises(TokenExchangeError, match="state parameter doesn't match"):
            _authenticator().exchange("expected", {"code": "c", "state": "forged"})
        mock_post.assert_not_called()


def test_exchange_surfaces_provider_error() -> None:
    with patch("requests.post") as mock_post:
        with pytest.raises(TokenExchangeError, match="access_denied"):
            _authenticator().exchange("s", {"state": "s", "error": "access_denied"})
        mock_post.assert_not_called()


def test_exchange_requires_code() -> None:
    with pytest.raises(TokenExchangeError, match="didn't get access code"):
        _authenticator().exchange("s", {"state": "s"})


def test_exchange_posts_code_and_returns_credential() -> None:
    payload = {
        "access_token": "access-123",
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_token": "refresh-456",
        "scope": "user-read-private",
    }
    before = datetime.now(timezone.utc)
    with patch("requests.post", return_value=_response(200, payload)) as mock_post:
        credential = _authenticator(timeout=4.0).exchange("s", {"state": "s", "code": "code-xyz"})

    assert credential.access_token == "access-123"
    assert credential.refresh_token == "refresh-456"
    assert credential.token_type == "Bearer"
    assert credential.expiry is not None
    assert before + timedelta(seconds=3590) < credential.expiry <= datetime.now(timezone.utc) + timedelta(seconds=3600)

    mock_post.assert_called_once()
    args, kwargs = mock_post.call_args
    assert args[0] == "https://accounts.spotify.com/api/token"
    assert kwargs["data"] == {
        "grant_type": "authorization_code",
        "code": "code-xyz",
        "redirect_uri": "http://localhost:9999/recommendli/v1/auth/callback",
    }
    assert kwargs["auth"] == ("client-id", "client-secret")
    assert kwargs["timeout"] == 4.0


def test_exchange_http_failure() -> None:
    with patch("requests.post", return_value=_response(400, {"error": "invalid_grant"})):
        with pytest.raises(TokenExchangeError, match="status=400"):
            _authenticator().exchange("s", {"state": "s", "code": "c"})


def test_exchange_network_failure() -> None:
    with patch("requests.post", side_effect=requests.Timeout("slow")):
        with pytest.raises(TokenExchangeError, match="Timeout"):
            _authenticator().exchange("s", {"state": "s", "code": "c"})


def test_credential_from_token_response() -> None:
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    credential = credential_from_token_response({"access_token": "a", "expires_in": "60"}, now=now)
    assert credential == Credential(access_token="a", token_type="Bearer", expiry=now + timedelta(seconds=60))

    with pytest.raises(TokenExchangeError, match="missing access_token"):
        credential_from_token_response({"token_type": "Bearer"})


def test_new_client_binds_credential() -> None:
    credential = Credential(access_token="a")
    client = _authenticator(api_base_url="http://localhost:19480/v1").new_client(credential)
    assert client.credential is credential
    assert client.api_base_url == "http://localhost:19480/v1"
    assert client.auto_retry is False


def test_current_user_sends_bearer_token() -> None:
    client = SpotifyClient(Credential(access_token="tok"), timeout=3.0)
    payload = {"id": "kristoffer", "display_name": "Kristoffer", "images": []}
    with patch("requests.request", return_value=_response(200, payload)) as mock_request:
        user = client.current_user()

    assert user.id == "kristoffer"
    assert user.display_name == "Kristoffer"
    args, kwargs = mock_request.call_args
    assert args == ("GET", "https://api.spotify.com/v1/me")
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["timeout"] == 3.0


def test_auto_retry_waits_for_retry_after() -> None:
    client = SpotifyClient(Credential(access_token="tok"), auto_retry=True)
    responses = [
        _response(429, _RATE_LIMITED, headers={"Retry-After": "2"}),
        _response(200, {"id": "kristoffer"}),
    ]
    with patch("requests.request", side_effect=responses) as mock_request:
        with patch("recommendli.providers.spotify_provider.time.sleep") as mock_sleep:
            user = client.current_user()

    assert user.id == "kristoffer"
    assert mock_request.call_count == 2
    mock_sleep.assert_called_once_with(2)


def test_rate_limit_without_auto_retry_raises() -> None:
    client = SpotifyClient(Credential(access_token="tok"))
    resp = _response(429, _RATE_LIMITED, headers={"Retry-After": "2"})
    with patch("requests.request", return_value=resp) as mock_request:
        with pytest.raises(SpotifyError) as exc:
            client.current_user()

    assert exc.value.status == 429
    assert exc.value.message == "API rate limit exceeded"
    assert mock_request.call_count == 1


def test_auto_retry_gives_up_after_max_retries() -> None:
    client = SpotifyClient(Credential(access_token="tok"), auto_retry=True, max_retries=2)
    resp = _response(429, _RATE_LIMITED, headers={"Retry-After": "1"})
    with patch("requests.request", return_value=resp) as mock_request:
        with patch("recommendli.providers.spotify_provider.time.sleep"):
            with pytest.raises(SpotifyError):
                client.current_user()

    assert mock_request.call_count == 3


def test_auto_retry_caps_retry_after(caplog) -> None:
    client = SpotifyClient(Credential(access_token="tok"), auto_retry=True, max_retries=1)
    resp = _response(429, _RATE_LIMITED, headers={"Retry-After": "86400"})
    with patch("requests.request", return_value=resp):
        with patch("recommendli.providers.spotify_provider.time.sleep") as mock_sleep:
            with caplog.at_level(logging.WARNING, logger="recommendli.providers.spotify_provider"):
                with pytest.raises(SpotifyError):
                    client.current_user()

    mock_sleep.assert_called_once_with(MAX_RETRY_AFTER_SECONDS)
    assert "giving up after 1 retries" in caplog.text


def test_api_error_message_is_extracted() -> None:
    client = SpotifyClient(Credential(access_token="expired"), auto_retry=True)
    resp = _response(401, {"error": {"status": 401, "message": "The access token expired"}})
    with patch("requests.request", return_value=resp):
        with pytest.raises(SpotifyError, match="The access token expired"):
            client.current_user()
