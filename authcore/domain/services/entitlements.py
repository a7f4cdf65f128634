from __future__ import annotations

from datetime import datetime

from authcore.domain.entities.payment import PaymentAccess, PaymentEntitlement
from authcore.domain.entities.user import Invite


STRIPE_SUBSCRIPTION_STATUS_MAP = {
    "active": "active",
    "trialing": "active",
    "canceled": "cancelled",
    "incomplete_expired": "expired",
    "past_due": "failed",
    "unpaid": "failed",
    "incomplete": "pending",
    "paused": "pending",
}


def is_invite_valid(invite: Invite | None, *, user_id: str, now: datetime) -> bool:
    """An invite grants access to the account it is bound to until it expires.

    Invites are keyed by email and consumed at sign-up, so a used invite still
    counts for the user who consumed it but never for another account.
    """
    if invite is None:
        return False
    if invite.expires_at is not None and invite.expires_at <= now:
        return False
    if invite.used_at is not None and invite.used_by_user_id not in (None, user_id):
        return False
    return True


def is_payment_active(payment: PaymentEntitlement | None, *, now: datetime) -> bool:
    if payment is None:
        return False
    if payment.payment_status != "active":
        return False
    return payment.subscription_end_date is not None and payment.subscription_end_date > now


def resolve_payment_access(
    *,
    user_id: str,
    invite: Invite | None,
    payment: PaymentEntitlement | None,
    now: datetime,
) -> PaymentAccess:
    has_valid_invite = is_invite_valid(invite, user_id=user_id, now=now)
    payment_active = is_payment_active(payment, now=now)
    return PaymentAccess(
        payment_required=not (has_valid_invite or payment_active),
        payment_status=payment.payment_status if payment is not None else None,
        subscription_end_date=payment.subscription_end_date if payment is not None else None,
        has_valid_invite=has_valid_invite,
        invite_expires_at=invite.expires_at if has_valid_invite and invite is not None else None,
    )


def map_stripe_subscription_status(status: str | None) -> str:
    return STRIPE_SUBSCRIPTION_STATUS_MAP.get((status or "").lower(), "pending")
