from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class WebhookEvent:
    id: str
    stripe_event_id: str
    event_type: str
    processed: bool
    processing_attempts: int
    last_error: str | None
    event_data: dict
    created_at: datetime
    processed_at: datetime | None
