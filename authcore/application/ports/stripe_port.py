from __future__ import annotations

from typing import Protocol

from authcore.application.dto.billing import StripeCheckoutSessionResult, StripeWebhookEvent


class StripePort(Protocol):
    def create_checkout_session(
        self,
        *,
        user_id: str,
        payment_id: str,
        payment_type: str,
        success_url: str,
        cancel_url: str,
        customer_id: str | None,
        customer_email: str | None,
    ) -> StripeCheckoutSessionResult:
        ...

    def verify_webhook(self, *, signature: str, payload: bytes) -> StripeWebhookEvent:
        ...
