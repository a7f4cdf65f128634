from __future__ import annotations

import json
from typing import Any, Mapping

from authcore.domain.entities.oauth_state import OAuthState
from authcore.domain.entities.payment import PaymentEntitlement
from authcore.domain.entities.user import Invite, User
from authcore.domain.entities.webhook_event import WebhookEvent

from .common import as_str, from_iso


def map_row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        id=as_str(row["id"]),
        email=row["email"],
        password_hash=row.get("password_hash"),
        provider=row["provider"],
        provider_user_id=row.get("provider_user_id"),
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def map_row_to_invite(row: Mapping[str, Any]) -> Invite:
    return Invite(
        id=as_str(row["id"]),
        email=row["email"],
        invited_by=row.get("invited_by"),
        invited_at=from_iso(row["invited_at"]),
        used_at=from_iso(row.get("used_at")),
        used_by_user_id=row.get("used_by_user_id"),
        expires_at=from_iso(row.get("expires_at")),
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def map_row_to_oauth_state(row: Mapping[str, Any]) -> OAuthState:
    return OAuthState(
        state=row["state"],
        provider=row["provider"],
        redirect_uri=row["redirect_uri"],
        cli_flow_state=row.get("cli_flow_state"),
        created_at=from_iso(row["created_at"]),
        expires_at=from_iso(row["expires_at"]),
    )


def map_row_to_payment(row: Mapping[str, Any]) -> PaymentEntitlement:
    amount = row.get("amount_cents")
    return PaymentEntitlement(
        id=as_str(row["id"]),
        user_id=as_str(row["user_id"]),
        stripe_customer_id=row.get("stripe_customer_id"),
        stripe_subscription_id=row.get("stripe_subscription_id"),
        stripe_payment_intent_id=row.get("stripe_payment_intent_id"),
        payment_status=row["payment_status"],
        payment_type=row["payment_type"],
        amount_cents=int(amount) if amount is not None else None,
        currency=row.get("currency"),
        subscription_start_date=from_iso(row.get("subscription_start_date")),
        subscription_end_date=from_iso(row.get("subscription_end_date")),
        subscription_cancelled_at=from_iso(row.get("subscription_cancelled_at")),
        last_payment_date=from_iso(row.get("last_payment_date")),
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def map_row_to_webhook_event(row: Mapping[str, Any]) -> WebhookEvent:
    raw = row.get("event_data")
    return WebhookEvent(
        id=as_str(row["id"]),
        stripe_event_id=row["stripe_event_id"],
        event_type=row["event_type"],
        processed=bool(row["processed"]),
        processing_attempts=int(row["processing_attempts"] or 0),
        last_error=row.get("last_error"),
        event_data=json.loads(raw) if raw else {},
        created_at=from_iso(row["created_at"]),
        processed_at=from_iso(row.get("processed_at")),
    )
