from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from authcore.domain.entities.payment import PaymentAccess


@dataclass(frozen=True)
class AuthUserOutput:
    id: str
    email: str
    provider: str
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class UnifiedAuthOutput:
    auth_token: str | None
    auth_user: AuthUserOutput
    payment_user: PaymentAccess


@dataclass(frozen=True)
class RegisterUserInput:
    email: str
    password: str


@dataclass(frozen=True)
class LoginLocalInput:
    email: str
    password: str


@dataclass(frozen=True)
class VerifySessionInput:
    token: str


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str | None
    scope: str
    device_id: str | None
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime
