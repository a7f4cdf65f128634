from __future__ import annotations

from datetime import datetime, timedelta, timezone
import unittest

from authcore.domain.entities.payment import PaymentEntitlement
from authcore.domain.entities.user import Invite
from authcore.domain.services.entitlements import (
    is_invite_valid,
    is_payment_active,
    map_stripe_subscription_status,
    resolve_payment_access,
)


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _invite(**overrides) -> Invite:
    params = {
        "id": "invite-1",
        "email": "bob@example.com",
        "invited_by": "admin",
        "invited_at": NOW - timedelta(days=3),
        "used_at": None,
        "used_by_user_id": None,
        "expires_at": None,
        "created_at": NOW - timedelta(days=3),
        "updated_at": NOW - timedelta(days=3),
    }
    params.update(overrides)
    return Invite(**params)


def _payment(**overrides) -> PaymentEntitlement:
    params = {
        "id": "pay-1",
        "user_id": "user-1",
        "stripe_customer_id": "cus_1",
        "stripe_subscription_id": "sub_1",
        "stripe_payment_intent_id": None,
        "payment_status": "active",
        "payment_type": "subscription",
        "amount_cents": 1500,
        "currency": "usd",
        "subscription_start_date": NOW - timedelta(days=10),
        "subscription_end_date": NOW + timedelta(days=20),
        "subscription_cancelled_at": None,
        "last_payment_date": NOW - timedelta(days=10),
        "created_at": NOW - timedelta(days=10),
        "updated_at": NOW - timedelta(days=10),
    }
    params.update(overrides)
    return PaymentEntitlement(**params)


class InviteValidityTests(unittest.TestCase):
    def test_missing_invite_is_not_valid(self):
        self.assertFalse(is_invite_valid(None, user_id="user-1", now=NOW))

    def test_unused_invite_without_expiry_is_valid(self):
        self.assertTrue(is_invite_valid(_invite(), user_id="user-1", now=NOW))

    def test_expired_invite_is_not_valid(self):
        invite = _invite(expires_at=NOW - timedelta(seconds=1))
        self.assertFalse(is_invite_valid(invite, user_id="user-1", now=NOW))

    def test_invite_expiring_exactly_now_is_not_valid(self):
        self.assertFalse(is_invite_valid(_invite(expires_at=NOW), user_id="user-1", now=NOW))

    def test_used_invite_still_counts_for_the_consumer(self):
        invite = _invite(used_at=NOW - timedelta(days=1), used_by_user_id="user-1")
        self.assertTrue(is_invite_valid(invite, user_id="user-1", now=NOW))

    def test_used_invite_does_not_count_for_another_account(self):
        invite = _invite(used_at=NOW - timedelta(days=1), used_by_user_id="user-2")
        self.assertFalse(is_invite_valid(invite, user_id="user-1", now=NOW))


class PaymentActiveTests(unittest.TestCase):
    def test_active_with_future_end_date(self):
        self.assertTrue(is_payment_active(_payment(), now=NOW))

    def test_active_without_end_date_is_not_active(self):
        self.assertFalse(is_payment_active(_payment(subscription_end_date=None), now=NOW))

    def test_active_but_lapsed(self):
        self.assertFalse(is_payment_active(_payment(subscription_end_date=NOW - timedelta(minutes=1)), now=NOW))

    def test_non_active_statuses(self):
        for status in ("pending", "cancelled", "expired", "failed"):
            with self.subTest(status=status):
                self.assertFalse(is_payment_active(_payment(payment_status=status), now=NOW))


class ResolvePaymentAccessTests(unittest.TestCase):
    def test_payment_required_is_negation_of_invite_or_payment(self):
        invites = [None, _invite(), _invite(expires_at=NOW - timedelta(days=1))]
        payments = [None, _payment(), _payment(payment_status="cancelled")]
        for invite in invites:
            for payment in payments:
                with self.subTest(invite=invite, payment=payment):
                    access = resolve_payment_access(user_id="user-1", invite=invite, payment=payment, now=NOW)
                    expected = not (
                        is_invite_valid(invite, user_id="user-1", now=NOW) or is_payment_active(payment, now=NOW)
                    )
                    self.assertEqual(access.payment_required, expected)

    def test_invited_user_without_payment(self):
        expires_at = NOW + timedelta(days=5)
        access = resolve_payment_access(
            user_id="user-1",
            invite=_invite(expires_at=expires_at),
            payment=None,
            now=NOW,
        )
        self.assertFalse(access.payment_required)
        self.assertTrue(access.has_valid_invite)
        self.assertEqual(access.invite_expires_at, expires_at)
        self.assertIsNone(access.payment_status)

    def test_lapsed_subscription_requires_payment(self):
        payment = _payment(subscription_end_date=NOW - timedelta(days=1))
        access = resolve_payment_access(user_id="user-1", invite=None, payment=payment, now=NOW)
        self.assertTrue(access.payment_required)
        self.assertEqual(access.payment_status, "active")
        self.assertEqual(access.subscription_end_date, payment.subscription_end_date)
        self.assertIsNone(access.invite_expires_at)


class StripeStatusMapTests(unittest.TestCase):
    def test_known_statuses(self):
        self.assertEqual(map_stripe_subscription_status("active"), "active")
        self.assertEqual(map_stripe_subscription_status("trialing"), "active")
        self.assertEqual(map_stripe_subscription_status("canceled"), "cancelled")
        self.assertEqual(map_stripe_subscription_status("past_due"), "failed")
        self.assertEqual(map_stripe_subscription_status("incomplete_expired"), "expired")

    def test_unknown_or_missing_status_is_pending(self):
        self.assertEqual(map_stripe_subscription_status("something_new"), "pending")
        self.assertEqual(map_stripe_subscription_status(None), "pending")
