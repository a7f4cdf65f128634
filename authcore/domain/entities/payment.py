from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


PaymentStatus = Literal["pending", "active", "cancelled", "expired", "failed"]
PaymentType = Literal["subscription", "one_time"]

PAYMENT_STATUSES: tuple[str, ...] = ("pending", "active", "cancelled", "expired", "failed")


@dataclass(frozen=True)
class PaymentEntitlement:
    id: str
    user_id: str
    stripe_customer_id: str | None
    stripe_subscription_id: str | None
    stripe_payment_intent_id: str | None
    payment_status: PaymentStatus
    payment_type: PaymentType
    amount_cents: int | None
    currency: str | None
    subscription_start_date: datetime | None
    subscription_end_date: datetime | None
    subscription_cancelled_at: datetime | None
    last_payment_date: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class PaymentAccess:
    """Derived entitlement view returned to clients as ``payment_user``."""

    payment_required: bool
    payment_status: PaymentStatus | None
    subscription_end_date: datetime | None
    has_valid_invite: bool
    invite_expires_at: datetime | None
