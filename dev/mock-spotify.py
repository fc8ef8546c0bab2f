#!/usr/bin/env python3
"""
Mock Spotify accounts + Web API server for local development.

Point the app at it with:
  SPOTIFY_ACCOUNTS_URL=http://localhost:19480
  SPOTIFY_API_URL=http://localhost:19480/v1
"""

import sys
from urllib.parse import urlencode

from flask import Flask, jsonify, redirect, request

app = Flask(__name__)

MOCK_CODE = "mock-authorization-code"
MOCK_ACCESS_TOKEN = "mock-access-token"


@app.route("/authorize")
def authorize():
    """Skip the consent screen and send the browser straight back with a code."""
    redirect_uri = request.args.get("redirect_uri", "")
    if not redirect_uri:
        return jsonify({"error": "invalid_request", "error_description": "redirect_uri required"}), 400
    params = {"code": MOCK_CODE, "state": request.args.get("state", "")}
    return redirect(f"{redirect_uri}?{urlencode(params)}")


@app.route("/api/token", methods=["POST"])
def token():
    """Exchange the mock code for a bearer token."""
    if request.form.get("grant_type") != "authorization_code" or request.form.get("code") != MOCK_CODE:
        return jsonify({"error": "invalid_grant", "error_description": "Invalid authorization code"}), 400
    return jsonify(
        {
            "access_token": MOCK_ACCESS_TOKEN,
            "token_type": "Bearer",
            "expires_in": 3600,
            "refresh_token": "mock-refresh-token",
            "scope": request.form.get("scope", ""),
        }
    )


@app.route("/v1/me")
def me():
    """Return a fixed user profile."""
    if request.headers.get("Authorization", "") != f"Bearer {MOCK_ACCESS_TOKEN}":
        return jsonify({"error": {"status": 401, "message": "Invalid access token"}}), 401
    return jsonify(
        {
            "id": "mock-user",
            "display_name": "Mock User",
            "email": "mock-user@example.com",
            "country": "SE",
            "product": "premium",
            "uri": "spotify:user:mock-user",
        }
    )


@app.route("/healthz")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok"})


if __name__ == "__main__":
    print("Mock Spotify starting on http://0.0.0.0:19480", file=sys.stderr)
    app.run(host="0.0.0.0", port=19480, debug=False)
