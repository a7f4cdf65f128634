from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


FlowStatus = Literal["pending", "completed", "expired"]


@dataclass(frozen=True)
class CLIDevice:
    id: str
    user_id: str | None
    device_name: str
    device_fingerprint: str
    last_used_at: datetime | None
    created_at: datetime
    revoked_at: datetime | None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_provisional(self) -> bool:
        return self.user_id is None


@dataclass(frozen=True)
class CLIAuthFlow:
    id: str
    device_id: str
    state: str
    code_challenge: str
    challenge_method: str
    status: FlowStatus
    auth_code: str | None
    user_id: str | None
    expires_at: datetime
    created_at: datetime
    completed_at: datetime | None
    redeemed_at: datetime | None

    def is_past_expiry(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True)
class CLIRefreshToken:
    id: str
    device_id: str
    token_hash: str
    expires_at: datetime
    last_used_at: datetime | None
    created_at: datetime
    revoked_at: datetime | None
