from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


AuthProvider = Literal["local", "google", "github"]

OAUTH_PROVIDERS: tuple[str, ...] = ("google", "github")


@dataclass(frozen=True)
class User:
    id: str
    email: str
    password_hash: str | None
    provider: AuthProvider
    provider_user_id: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_usable(self) -> bool:
        return bool(self.password_hash) or self.provider != "local"


@dataclass(frozen=True)
class Invite:
    id: str
    email: str
    invited_by: str | None
    invited_at: datetime
    used_at: datetime | None
    used_by_user_id: str | None
    expires_at: datetime | None
    created_at: datetime
    updated_at: datetime
