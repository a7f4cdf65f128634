from __future__ import annotations

import re
from datetime import datetime, timezone

from authcore.application.dto.auth import AuthUserOutput, UnifiedAuthOutput
from authcore.domain.entities.payment import PaymentAccess
from authcore.domain.entities.user import User


MIN_PASSWORD_LENGTH = 12

WEB_SCOPE = "web"
CLI_SCOPE = "cli"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return len(email) <= 254 and bool(_EMAIL_RE.match(email))


def build_auth_user_output(user: User) -> AuthUserOutput:
    return AuthUserOutput(
        id=user.id,
        email=user.email,
        provider=user.provider,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def build_unified_output(
    *,
    user: User,
    auth_token: str | None,
    payment_access: PaymentAccess,
) -> UnifiedAuthOutput:
    return UnifiedAuthOutput(
        auth_token=auth_token,
        auth_user=build_auth_user_output(user),
        payment_user=payment_access,
    )
