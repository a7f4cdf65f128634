from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    # Length policy lives in the use case so a short password answers 400.
    password: str = Field(..., min_length=1, max_length=256)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


class AuthUserResponse(BaseModel):
    id: str
    email: str
    provider: str
    created_at: datetime
    updated_at: datetime


class PaymentUserResponse(BaseModel):
    payment_required: bool
    payment_status: str | None
    subscription_end_date: datetime | None
    has_valid_invite: bool
    invite_expires_at: datetime | None


class UnifiedAuthResponse(BaseModel):
    auth_token: str | None
    auth_user: AuthUserResponse
    payment_user: PaymentUserResponse


class VerifyResponse(BaseModel):
    valid: bool
    user_id: str
    email: str | None
    scope: str
    expires_at: datetime
