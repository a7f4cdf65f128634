from __future__ import annotations

import logging

from authcore.application.dto.billing import CreateCheckoutSessionInput, CreateCheckoutSessionOutput
from authcore.application.ports.credential_store_port import CredentialStorePort
from authcore.application.ports.stripe_port import StripePort
from authcore.application.ports.webhook_ledger_port import BillingStorePort
from authcore.domain.entities.payment import PaymentEntitlement
from authcore.domain.exceptions import BillingError

from .auth_common import utcnow
from .process_stripe_webhook import new_pending_payment


logger = logging.getLogger(__name__)

PAYMENT_TYPES = {"subscription", "one_time"}


class CreateCheckoutSessionUseCase:
    def __init__(
        self,
        *,
        credential_store: CredentialStorePort,
        billing_store: BillingStorePort,
        stripe_port: StripePort,
    ):
        self._credential_store = credential_store
        self._billing_store = billing_store
        self._stripe_port = stripe_port

    def execute(self, command: CreateCheckoutSessionInput) -> CreateCheckoutSessionOutput:
        if command.payment_type not in PAYMENT_TYPES:
            raise BillingError("payment_type must be 'subscription' or 'one_time'.")

        user = self._credential_store.get_user_by_id(user_id=command.user_id)
        if user is None:
            raise BillingError("User not found.")

        def _tx(store: BillingStorePort) -> PaymentEntitlement:
            existing = store.get_payment_for_user(user_id=user.id)
            if existing is not None:
                return existing
            return store.create_payment(
                payment=new_pending_payment(
                    user_id=user.id,
                    payment_type=command.payment_type,
                    now=utcnow(),
                )
            )

        payment = self._billing_store.execute_in_transaction(_tx)

        result = self._stripe_port.create_checkout_session(
            user_id=user.id,
            payment_id=payment.id,
            payment_type=command.payment_type,
            success_url=command.success_url,
            cancel_url=command.cancel_url,
            customer_id=payment.stripe_customer_id,
            customer_email=user.email,
        )
        logger.info(
            "create_checkout_session: created user_id=%s payment_id=%s type=%s",
            user.id,
            payment.id,
            command.payment_type,
        )
        return CreateCheckoutSessionOutput(
            checkout_session_id=result.id,
            checkout_url=result.url,
            payment_id=payment.id,
        )
