from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from uuid import uuid4

from authcore.application.dto.billing import StripeWebhookEvent, StripeWebhookInput, StripeWebhookOutput
from authcore.application.ports.stripe_port import StripePort
from authcore.application.ports.webhook_ledger_port import BillingStorePort
from authcore.domain.entities.payment import PaymentEntitlement
from authcore.domain.exceptions import BillingError, WebhookAlreadyProcessed, WebhookSignatureInvalidError
from authcore.domain.services.entitlements import is_payment_active, map_stripe_subscription_status

from .auth_common import utcnow


logger = logging.getLogger(__name__)

ONE_TIME_ACCESS_DAYS = 30

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
}
INVOICE_PAID_EVENTS = {"invoice.paid", "invoice.payment_succeeded"}


class ProcessStripeWebhookUseCase:
    """Apply a verified payment-provider event to the entitlement row exactly once.

    The ledger insert, the entitlement mutation and the processed flag share a
    single transaction. A duplicate delivery, or one that loses a race with a
    concurrent delivery of the same event, ends as a no-op. A failed
    application is recorded on the ledger row and re-raised so the provider
    delivers the event again.
    """

    def __init__(
        self,
        *,
        billing_store: BillingStorePort,
        stripe_port: StripePort,
        one_time_access_days: int = ONE_TIME_ACCESS_DAYS,
    ):
        self._billing_store = billing_store
        self._stripe_port = stripe_port
        self._one_time_access_days = one_time_access_days

    def execute(self, command: StripeWebhookInput) -> StripeWebhookOutput:
        if not command.signature:
            raise WebhookSignatureInvalidError("Missing Stripe-Signature header.")

        event = self._stripe_port.verify_webhook(signature=command.signature, payload=command.payload)

        def _tx(store: BillingStorePort) -> bool:
            now = utcnow()
            decision = store.accept(
                stripe_event_id=event.event_id,
                event_type=event.event_type,
                event_data=event.raw,
                now=now,
            )
            if decision == "already_processed":
                raise WebhookAlreadyProcessed(event.event_id)

            handled = self._apply(store, event, now)

            if not store.mark_processed(stripe_event_id=event.event_id, processed_at=now):
                raise WebhookAlreadyProcessed(event.event_id)
            return handled

        try:
            handled = self._billing_store.execute_in_transaction(_tx)
        except WebhookAlreadyProcessed:
            logger.info(
                "stripe_webhook: duplicate event_id=%s type=%s",
                event.event_id,
                event.event_type,
            )
            return StripeWebhookOutput(
                event_id=event.event_id,
                event_type=event.event_type,
                handled=False,
                duplicate=True,
            )
        except Exception as exc:
            logger.warning(
                "stripe_webhook: processing_failed event_id=%s type=%s error=%s",
                event.event_id,
                event.event_type,
                exc,
            )
            self._billing_store.record_failure(
                stripe_event_id=event.event_id,
                event_type=event.event_type,
                event_data=event.raw,
                error=str(exc),
                now=utcnow(),
            )
            raise

        logger.info(
            "stripe_webhook: processed event_id=%s type=%s handled=%s",
            event.event_id,
            event.event_type,
            handled,
        )
        return StripeWebhookOutput(
            event_id=event.event_id,
            event_type=event.event_type,
            handled=handled,
            duplicate=False,
        )

    def _apply(self, store: BillingStorePort, event: StripeWebhookEvent, now: datetime) -> bool:
        event_type = event.event_type

        if event_type == "checkout.session.completed":
            payment = self._locate_payment(store, event, now)
            changes: dict = {
                "stripe_customer_id": event.customer_id or payment.stripe_customer_id,
                "stripe_subscription_id": event.subscription_id or payment.stripe_subscription_id,
            }
            if event.mode == "payment" and event.payment_status == "paid":
                changes.update(self._one_time_activation(payment, event, now))
            self._save(store, payment, changes, now)
            return True

        if event_type == "payment_intent.succeeded":
            payment = self._locate_payment(store, event, now)
            self._save(store, payment, self._one_time_activation(payment, event, now), now)
            return True

        if event_type == "payment_intent.payment_failed":
            payment = self._locate_payment(store, event, now)
            if is_payment_active(payment, now=now):
                return True
            self._save(
                store,
                payment,
                {
                    "payment_status": "failed",
                    "stripe_payment_intent_id": event.object_id or payment.stripe_payment_intent_id,
                },
                now,
            )
            return True

        if event_type in SUBSCRIPTION_EVENTS:
            payment = self._locate_payment(store, event, now)
            self._save(
                store,
                payment,
                {
                    "payment_status": map_stripe_subscription_status(event.status),
                    "payment_type": "subscription",
                    "stripe_subscription_id": event.object_id or payment.stripe_subscription_id,
                    "stripe_customer_id": event.customer_id or payment.stripe_customer_id,
                    "subscription_start_date": event.current_period_start or payment.subscription_start_date,
                    "subscription_end_date": event.current_period_end or payment.subscription_end_date,
                    "subscription_cancelled_at": event.canceled_at,
                },
                now,
            )
            return True

        if event_type == "customer.subscription.deleted":
            payment = self._locate_payment(store, event, now)
            self._save(
                store,
                payment,
                {
                    "payment_status": "cancelled",
                    "subscription_cancelled_at": event.canceled_at or now,
                },
                now,
            )
            return True

        if event_type in INVOICE_PAID_EVENTS:
            payment = self._locate_payment(store, event, now)
            self._save(
                store,
                payment,
                {
                    "last_payment_date": now,
                    "amount_cents": event.amount_cents if event.amount_cents is not None else payment.amount_cents,
                    "currency": event.currency or payment.currency,
                },
                now,
            )
            return True

        if event_type == "invoice.payment_failed":
            payment = self._locate_payment(store, event, now)
            self._save(store, payment, {"payment_status": "failed"}, now)
            return True

        logger.info("stripe_webhook: unhandled_type event_id=%s type=%s", event.event_id, event_type)
        return False

    def _one_time_activation(self, payment: PaymentEntitlement, event: StripeWebhookEvent, now: datetime) -> dict:
        return {
            "payment_status": "active",
            "payment_type": "one_time",
            "stripe_payment_intent_id": event.payment_intent_id or payment.stripe_payment_intent_id,
            "stripe_customer_id": event.customer_id or payment.stripe_customer_id,
            "amount_cents": event.amount_cents if event.amount_cents is not None else payment.amount_cents,
            "currency": event.currency or payment.currency,
            "subscription_start_date": now,
            "subscription_end_date": now + timedelta(days=self._one_time_access_days),
            "last_payment_date": now,
        }

    def _save(self, store: BillingStorePort, payment: PaymentEntitlement, changes: dict, now: datetime) -> None:
        store.save_payment(payment=replace(payment, updated_at=now, **changes))

    def _locate_payment(
        self,
        store: BillingStorePort,
        event: StripeWebhookEvent,
        now: datetime,
    ) -> PaymentEntitlement:
        payment_id = event.metadata.get("payment_id")
        if payment_id:
            payment = store.get_payment_by_id(payment_id=payment_id)
            if payment is not None:
                return payment

        if event.subscription_id:
            payment = store.get_payment_by_stripe_subscription_id(stripe_subscription_id=event.subscription_id)
            if payment is not None:
                return payment

        if event.customer_id:
            payment = store.get_payment_by_stripe_customer_id(stripe_customer_id=event.customer_id)
            if payment is not None:
                return payment

        user_id = event.metadata.get("user_id")
        if user_id:
            payment = store.get_payment_for_user(user_id=user_id)
            if payment is not None:
                return payment
            if store.user_exists(user_id=user_id):
                return store.create_payment(
                    payment=new_pending_payment(
                        user_id=user_id,
                        payment_type="subscription" if event.subscription_id else "one_time",
                        now=now,
                    )
                )

        raise BillingError(f"No payment record matches event {event.event_id}.")


def new_pending_payment(*, user_id: str, payment_type: str, now: datetime) -> PaymentEntitlement:
    return PaymentEntitlement(
        id=str(uuid4()),
        user_id=user_id,
        stripe_customer_id=None,
        stripe_subscription_id=None,
        stripe_payment_intent_id=None,
        payment_status="pending",
        payment_type=payment_type,
        amount_cents=None,
        currency=None,
        subscription_start_date=None,
        subscription_end_date=None,
        subscription_cancelled_at=None,
        last_payment_date=None,
        created_at=now,
        updated_at=now,
    )
