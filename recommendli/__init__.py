"""recommendli: Spotify-backed recommendations behind a cookie-session login."""
