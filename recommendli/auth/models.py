from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class Credential:
    """OAuth2 token bundle stored in the credential cookie."""

    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None  # UTC; None means the token carries no expiry

    def __post_init__(self) -> None:
        # Naive expiries are UTC.
        if self.expiry is not None and self.expiry.tzinfo is None:
            object.__setattr__(self, "expiry", self.expiry.replace(tzinfo=timezone.utc))
        if not self.refresh_token:
            object.__setattr__(self, "refresh_token", None)

    def valid(self, now: Optional[datetime] = None) -> bool:
        if not self.access_token:
            return False
        if self.expiry is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now < self.expiry

    def authorization_header(self) -> str:
        return f"{self.token_type or 'Bearer'} {self.access_token}"
