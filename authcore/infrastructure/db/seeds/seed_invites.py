from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable
from uuid import uuid4

from sqlalchemy import text

from authcore.infrastructure.db.mappers.common import to_iso


logger = logging.getLogger(__name__)


def seed_invites(
    engine,
    *,
    emails: Iterable[str],
    invited_by: str | None = None,
    expires_in_days: int | None = None,
) -> int:
    """Upsert invite rows; an existing invite gets a fresh expiry."""
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(days=expires_in_days) if expires_in_days is not None else None
    count = 0
    with engine.begin() as conn:
        for email in emails:
            normalized = email.strip().lower()
            if not normalized:
                continue
            conn.execute(
                text(
                    """
                    INSERT INTO user_invites (
                        id, email, invited_by, invited_at, expires_at, created_at, updated_at
                    ) VALUES (
                        :id, :email, :invited_by, :now, :expires_at, :now, :now
                    )
                    ON CONFLICT (email) DO UPDATE
                    SET invited_by = excluded.invited_by,
                        expires_at = excluded.expires_at,
                        updated_at = excluded.updated_at
                    """
                ),
                {
                    "id": str(uuid4()),
                    "email": normalized,
                    "invited_by": invited_by,
                    "expires_at": to_iso(expires_at),
                    "now": to_iso(now),
                },
            )
            count += 1
    logger.info("seed_invites: upserted count=%s", count)
    return count
