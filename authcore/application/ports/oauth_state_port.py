from __future__ import annotations

from datetime import datetime
from typing import Protocol

from authcore.domain.entities.oauth_state import OAuthState


class OAuthStatePort(Protocol):
    def create_state(
        self,
        *,
        state: str,
        provider: str,
        redirect_uri: str,
        cli_flow_state: str | None,
        created_at: datetime,
        expires_at: datetime,
    ) -> OAuthState:
        ...

    def consume_state(self, *, state: str) -> OAuthState | None:
        """Delete the row and return it; None when it was absent or already consumed."""
        ...

    def delete_expired_states(self, *, now: datetime) -> int:
        ...
