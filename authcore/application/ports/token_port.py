from __future__ import annotations

from datetime import datetime
from typing import Protocol

from authcore.application.dto.auth import IssuedToken, TokenClaims


class TokenPort(Protocol):
    def issue(
        self,
        *,
        user_id: str,
        email: str | None,
        scope: str,
        now: datetime,
        device_id: str | None = None,
    ) -> IssuedToken:
        ...

    def verify(self, *, token: str) -> TokenClaims:
        ...

    def generate_refresh_token(self) -> str:
        ...

    def hash_refresh_token(self, *, refresh_token: str) -> str:
        ...

    def refresh_token_expires_at(self, *, now: datetime) -> datetime:
        ...
