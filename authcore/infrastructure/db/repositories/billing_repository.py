from __future__ import annotations

import json
from datetime import datetime
from uuid import uuid4

from sqlalchemy import text

from authcore.application.ports.webhook_ledger_port import BillingStorePort, LedgerDecision
from authcore.domain.entities.payment import PaymentEntitlement
from authcore.domain.entities.webhook_event import WebhookEvent
from authcore.infrastructure.db.mappers.accounts_mapper import map_row_to_payment, map_row_to_webhook_event
from authcore.infrastructure.db.mappers.common import to_iso

from .base import SqlRepository


PAYMENT_COLUMNS = """
    id, user_id, stripe_customer_id, stripe_subscription_id, stripe_payment_intent_id,
    payment_status, payment_type, amount_cents, currency,
    subscription_start_date, subscription_end_date, subscription_cancelled_at,
    last_payment_date, created_at, updated_at
"""
EVENT_COLUMNS = """
    id, stripe_event_id, event_type, processed, processing_attempts, last_error,
    event_data, created_at, processed_at
"""


def _payment_params(payment: PaymentEntitlement) -> dict:
    return {
        "id": payment.id,
        "user_id": payment.user_id,
        "stripe_customer_id": payment.stripe_customer_id,
        "stripe_subscription_id": payment.stripe_subscription_id,
        "stripe_payment_intent_id": payment.stripe_payment_intent_id,
        "payment_status": payment.payment_status,
        "payment_type": payment.payment_type,
        "amount_cents": payment.amount_cents,
        "currency": payment.currency,
        "subscription_start_date": to_iso(payment.subscription_start_date),
        "subscription_end_date": to_iso(payment.subscription_end_date),
        "subscription_cancelled_at": to_iso(payment.subscription_cancelled_at),
        "last_payment_date": to_iso(payment.last_payment_date),
        "created_at": to_iso(payment.created_at),
        "updated_at": to_iso(payment.updated_at),
    }


class SqlBillingRepository(SqlRepository, BillingStorePort):
    """Entitlement rows and the webhook ledger behind one connection."""

    def _get_payment(self, where: str, params: dict) -> PaymentEntitlement | None:
        sql = f"""
            SELECT {PAYMENT_COLUMNS}
            FROM user_payments
            WHERE {where}
            ORDER BY updated_at DESC
            LIMIT 1
        """
        with self._read() as conn:
            row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            return None
        return map_row_to_payment(row)

    def get_payment_for_user(self, *, user_id: str) -> PaymentEntitlement | None:
        return self._get_payment("user_id = :user_id", {"user_id": user_id})

    def get_payment_by_id(self, *, payment_id: str) -> PaymentEntitlement | None:
        return self._get_payment("id = :payment_id", {"payment_id": payment_id})

    def get_payment_by_stripe_customer_id(self, *, stripe_customer_id: str) -> PaymentEntitlement | None:
        return self._get_payment(
            "stripe_customer_id = :stripe_customer_id",
            {"stripe_customer_id": stripe_customer_id},
        )

    def get_payment_by_stripe_subscription_id(self, *, stripe_subscription_id: str) -> PaymentEntitlement | None:
        return self._get_payment(
            "stripe_subscription_id = :stripe_subscription_id",
            {"stripe_subscription_id": stripe_subscription_id},
        )

    def user_exists(self, *, user_id: str) -> bool:
        with self._read() as conn:
            row = conn.execute(text("SELECT 1 FROM users WHERE id = :user_id"), {"user_id": user_id}).first()
        return row is not None

    def create_payment(self, *, payment: PaymentEntitlement) -> PaymentEntitlement:
        sql = """
            INSERT INTO user_payments (
                id, user_id, stripe_customer_id, stripe_subscription_id, stripe_payment_intent_id,
                payment_status, payment_type, amount_cents, currency,
                subscription_start_date, subscription_end_date, subscription_cancelled_at,
                last_payment_date, created_at, updated_at
            ) VALUES (
                :id, :user_id, :stripe_customer_id, :stripe_subscription_id, :stripe_payment_intent_id,
                :payment_status, :payment_type, :amount_cents, :currency,
                :subscription_start_date, :subscription_end_date, :subscription_cancelled_at,
                :last_payment_date, :created_at, :updated_at
            )
        """
        with self._write() as conn:
            conn.execute(text(sql), _payment_params(payment))
        return payment

    def save_payment(self, *, payment: PaymentEntitlement) -> None:
        sql = """
            UPDATE user_payments
            SET stripe_customer_id = :stripe_customer_id,
                stripe_subscription_id = :stripe_subscription_id,
                stripe_payment_intent_id = :stripe_payment_intent_id,
                payment_status = :payment_status,
                payment_type = :payment_type,
                amount_cents = :amount_cents,
                currency = :currency,
                subscription_start_date = :subscription_start_date,
                subscription_end_date = :subscription_end_date,
                subscription_cancelled_at = :subscription_cancelled_at,
                last_payment_date = :last_payment_date,
                updated_at = :updated_at
            WHERE id = :id
        """
        params = _payment_params(payment)
        params.pop("user_id")
        params.pop("created_at")
        with self._write() as conn:
            conn.execute(text(sql), params)

    def accept(
        self,
        *,
        stripe_event_id: str,
        event_type: str,
        event_data: dict,
        now: datetime,
    ) -> LedgerDecision:
        insert_sql = """
            INSERT INTO stripe_webhook_events (
                id, stripe_event_id, event_type, processed, processing_attempts, event_data, created_at
            ) VALUES (
                :id, :stripe_event_id, :event_type, :processed, 0, :event_data, :created_at
            )
            ON CONFLICT (stripe_event_id) DO NOTHING
        """
        select_sql = "SELECT processed FROM stripe_webhook_events WHERE stripe_event_id = :stripe_event_id"
        with self._write() as conn:
            conn.execute(
                text(insert_sql),
                {
                    "id": str(uuid4()),
                    "stripe_event_id": stripe_event_id,
                    "event_type": event_type,
                    "processed": False,
                    "event_data": json.dumps(event_data, default=str),
                    "created_at": to_iso(now),
                },
            )
            row = conn.execute(text(select_sql), {"stripe_event_id": stripe_event_id}).mappings().first()
        if row is not None and bool(row["processed"]):
            return "already_processed"
        return "to_process"

    def mark_processed(self, *, stripe_event_id: str, processed_at: datetime) -> bool:
        sql = """
            UPDATE stripe_webhook_events
            SET processed = :processed,
                processed_at = :processed_at,
                last_error = NULL
            WHERE stripe_event_id = :stripe_event_id
              AND processed = :not_processed
        """
        with self._write() as conn:
            result = conn.execute(
                text(sql),
                {
                    "stripe_event_id": stripe_event_id,
                    "processed": True,
                    "not_processed": False,
                    "processed_at": to_iso(processed_at),
                },
            )
        return result.rowcount == 1

    def record_failure(
        self,
        *,
        stripe_event_id: str,
        event_type: str,
        event_data: dict,
        error: str,
        now: datetime,
    ) -> None:
        # The failed transaction rolled back its ledger insert, so this upserts.
        sql = """
            INSERT INTO stripe_webhook_events (
                id, stripe_event_id, event_type, processed, processing_attempts, last_error,
                event_data, created_at
            ) VALUES (
                :id, :stripe_event_id, :event_type, :processed, 1, :last_error, :event_data, :created_at
            )
            ON CONFLICT (stripe_event_id) DO UPDATE
            SET processing_attempts = stripe_webhook_events.processing_attempts + 1,
                last_error = excluded.last_error
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "id": str(uuid4()),
                    "stripe_event_id": stripe_event_id,
                    "event_type": event_type,
                    "processed": False,
                    "last_error": error[:2000],
                    "event_data": json.dumps(event_data, default=str),
                    "created_at": to_iso(now),
                },
            )

    def get_event(self, *, stripe_event_id: str) -> WebhookEvent | None:
        sql = f"""
            SELECT {EVENT_COLUMNS}
            FROM stripe_webhook_events
            WHERE stripe_event_id = :stripe_event_id
            LIMIT 1
        """
        with self._read() as conn:
            row = conn.execute(text(sql), {"stripe_event_id": stripe_event_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_webhook_event(row)
