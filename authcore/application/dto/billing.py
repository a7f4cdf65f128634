from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class CreateCheckoutSessionInput:
    user_id: str
    payment_type: str
    success_url: str
    cancel_url: str


@dataclass(frozen=True)
class CreateCheckoutSessionOutput:
    checkout_session_id: str
    checkout_url: str
    payment_id: str


@dataclass(frozen=True)
class StripeCheckoutSessionResult:
    id: str
    url: str


@dataclass(frozen=True)
class StripeWebhookInput:
    signature: str | None
    payload: bytes


@dataclass(frozen=True)
class StripeWebhookOutput:
    event_id: str
    event_type: str
    handled: bool
    duplicate: bool


@dataclass(frozen=True)
class StripeWebhookEvent:
    """Verified provider event, flattened to what the entitlement updates need."""

    event_id: str
    event_type: str
    created: datetime | None
    object_id: str | None
    customer_id: str | None
    subscription_id: str | None
    payment_intent_id: str | None
    status: str | None
    amount_cents: int | None
    currency: str | None
    current_period_start: datetime | None
    current_period_end: datetime | None
    canceled_at: datetime | None
    payment_status: str | None
    mode: str | None
    metadata: dict[str, str] = field(default_factory=dict)
    raw: dict = field(default_factory=dict)
