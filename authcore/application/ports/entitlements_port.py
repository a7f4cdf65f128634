from __future__ import annotations

from typing import Protocol

from authcore.domain.entities.payment import PaymentEntitlement


class EntitlementsPort(Protocol):
    def get_payment_for_user(self, *, user_id: str) -> PaymentEntitlement | None:
        ...

    def get_payment_by_id(self, *, payment_id: str) -> PaymentEntitlement | None:
        ...

    def get_payment_by_stripe_customer_id(self, *, stripe_customer_id: str) -> PaymentEntitlement | None:
        ...

    def get_payment_by_stripe_subscription_id(
        self,
        *,
        stripe_subscription_id: str,
    ) -> PaymentEntitlement | None:
        ...

    def user_exists(self, *, user_id: str) -> bool:
        ...

    def create_payment(self, *, payment: PaymentEntitlement) -> PaymentEntitlement:
        ...

    def save_payment(self, *, payment: PaymentEntitlement) -> None:
        ...
