from __future__ import annotations

from datetime import datetime
from typing import Callable, Literal, Protocol, TypeVar

from authcore.application.ports.entitlements_port import EntitlementsPort
from authcore.domain.entities.webhook_event import WebhookEvent


TResult = TypeVar("TResult")

LedgerDecision = Literal["already_processed", "to_process"]


class WebhookLedgerPort(Protocol):
    def accept(
        self,
        *,
        stripe_event_id: str,
        event_type: str,
        event_data: dict,
        now: datetime,
    ) -> LedgerDecision:
        ...

    def mark_processed(self, *, stripe_event_id: str, processed_at: datetime) -> bool:
        """False when a concurrent delivery already marked it."""
        ...

    def record_failure(
        self,
        *,
        stripe_event_id: str,
        event_type: str,
        event_data: dict,
        error: str,
        now: datetime,
    ) -> None:
        ...

    def get_event(self, *, stripe_event_id: str) -> WebhookEvent | None:
        ...


class BillingStorePort(EntitlementsPort, WebhookLedgerPort, Protocol):
    def execute_in_transaction(self, fn: Callable[[BillingStorePort], TResult]) -> TResult:
        ...
