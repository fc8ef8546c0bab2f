from __future__ import annotations

from recommendli.providers.spotify_provider import SpotifyClient, SpotifyUser


class Service:
    """Per-request business logic bound to one user's Spotify client."""

    def __init__(self, spotify: SpotifyClient) -> None:
        self.spotify = spotify

    def current_user(self) -> SpotifyUser:
        return self.spotify.current_user()


class ServiceFactory:
    def new_service(self, client: SpotifyClient) -> Service:
        return Service(client)
