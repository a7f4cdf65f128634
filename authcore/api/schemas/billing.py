from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class CreateCheckoutSessionRequest(BaseModel):
    payment_type: Literal["subscription", "one_time"] = "subscription"


class CreateCheckoutSessionResponse(BaseModel):
    checkout_session_id: str
    checkout_url: str
    payment_id: str


class PaidAccessResponse(BaseModel):
    payment_required: bool


class StripeWebhookResponse(BaseModel):
    event_id: str
    event_type: str
    handled: bool
    duplicate: bool
