"""
Authentication for the recommendli API.

Design goals:
- Spotify OAuth2 authorization code flow.
- Cookie-only session (no server-side session table).
- Missing, corrupt and expired credentials all resolve to a fresh login redirect.
"""
