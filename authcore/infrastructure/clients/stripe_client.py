from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import stripe

from authcore.application.dto.billing import StripeCheckoutSessionResult, StripeWebhookEvent
from authcore.application.ports.stripe_port import StripePort
from authcore.domain.exceptions import BillingError, WebhookPayloadError, WebhookSignatureInvalidError


logger = logging.getLogger(__name__)


class StripeClient(StripePort):
    def __init__(
        self,
        *,
        secret_key: str,
        webhook_secret: str,
        subscription_price_id: str | None = None,
        one_time_price_id: str | None = None,
    ):
        stripe.api_key = secret_key
        self._webhook_secret = webhook_secret
        self._subscription_price_id = subscription_price_id
        self._one_time_price_id = one_time_price_id

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
        metadata = {"user_id": user_id, "payment_id": payment_id}
        if payment_type == "subscription":
            price_id = self._subscription_price_id
            payload: dict = {
                "mode": "subscription",
                "subscription_data": {"metadata": metadata},
            }
        else:
            price_id = self._one_time_price_id
            payload = {
                "mode": "payment",
                "payment_intent_data": {"metadata": metadata},
            }
        if not price_id:
            raise BillingError(f"No Stripe price configured for {payment_type} payments.")

        payload.update(
            {
                "line_items": [{"price": price_id, "quantity": 1}],
                "success_url": success_url,
                "cancel_url": cancel_url,
                "client_reference_id": user_id,
                "metadata": metadata,
            }
        )
        if customer_id:
            payload["customer"] = customer_id
        elif customer_email:
            payload["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**payload)
        except stripe.StripeError as exc:  # pragma: no cover - external API
            logger.warning("stripe_client: checkout_failed user_id=%s error=%s", user_id, exc)
            raise BillingError("Failed to create Stripe checkout session.") from exc

        session_id = getattr(session, "id", None)
        session_url = getattr(session, "url", None)
        if not session_id or not session_url:
            raise BillingError("Stripe checkout session response is incomplete.")

        return StripeCheckoutSessionResult(id=str(session_id), url=str(session_url))

    def verify_webhook(self, *, signature: str, payload: bytes) -> StripeWebhookEvent:
        # Signature first: an unsigned body is rejected before it is parsed.
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self._webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            raise WebhookSignatureInvalidError("Invalid Stripe webhook signature.") from exc

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise WebhookPayloadError("Stripe webhook payload is not valid JSON.") from exc
        return parse_event(event)


def parse_event(event: dict) -> StripeWebhookEvent:
    if not isinstance(event, dict):
        raise WebhookPayloadError("Stripe webhook payload must be an object.")
    event_id = event.get("id")
    event_type = event.get("type")
    if not event_id or not event_type:
        raise WebhookPayloadError("Stripe webhook payload is missing id or type.")

    data_object = (event.get("data") or {}).get("object") or {}
    if not isinstance(data_object, dict):
        raise WebhookPayloadError("Stripe webhook payload has a malformed data object.")

    object_type = data_object.get("object")
    metadata = _metadata(data_object)
    if data_object.get("client_reference_id") and "user_id" not in metadata:
        metadata["user_id"] = str(data_object["client_reference_id"])

    subscription_id = data_object.get("subscription")
    if object_type == "subscription":
        subscription_id = data_object.get("id")
    elif object_type == "invoice" and not subscription_id:
        details = ((data_object.get("parent") or {}).get("subscription_details")) or {}
        subscription_id = details.get("subscription")
        metadata = {**_metadata(details), **metadata}

    payment_intent_id = data_object.get("payment_intent")
    if object_type == "payment_intent":
        payment_intent_id = data_object.get("id")

    period_start, period_end = _subscription_period(data_object)

    return StripeWebhookEvent(
        event_id=str(event_id),
        event_type=str(event_type),
        created=_to_datetime(event.get("created")),
        object_id=_as_id(data_object.get("id")),
        customer_id=_as_id(data_object.get("customer")),
        subscription_id=_as_id(subscription_id),
        payment_intent_id=_as_id(payment_intent_id),
        status=data_object.get("status"),
        amount_cents=_amount(data_object),
        currency=data_object.get("currency"),
        current_period_start=period_start,
        current_period_end=period_end,
        canceled_at=_to_datetime(data_object.get("canceled_at")),
        payment_status=data_object.get("payment_status"),
        mode=data_object.get("mode"),
        metadata=metadata,
        raw=event,
    )


def _metadata(data: dict) -> dict[str, str]:
    raw = data.get("metadata") or {}
    if not isinstance(raw, dict):
        return {}
    return {str(key): str(value) for key, value in raw.items() if value is not None}


def _as_id(value) -> str | None:
    # Expanded objects carry their id inside.
    if isinstance(value, dict):
        value = value.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _amount(data: dict) -> int | None:
    for key in ("amount_total", "amount_received", "amount_paid", "amount"):
        value = data.get(key)
        if value is not None:
            return int(value)
    return None


def _subscription_period(data: dict) -> tuple[datetime | None, datetime | None]:
    start = data.get("current_period_start")
    end = data.get("current_period_end")
    if start is None and end is None:
        # Newer API versions moved the period onto the subscription items.
        items = (data.get("items") or {}).get("data") or []
        if items and isinstance(items[0], dict):
            start = items[0].get("current_period_start")
            end = items[0].get("current_period_end")
    return _to_datetime(start), _to_datetime(end)


def _to_datetime(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)
