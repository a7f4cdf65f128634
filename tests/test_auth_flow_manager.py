from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

import httpx

from authcore.client.api_client import ApiError, AuthApiClient
from authcore.client.auth_flow_manager import AuthFlowManager
from authcore.client.session_cache import InMemorySessionCache
from authcore.infrastructure.db.seeds.seed_invites import seed_invites


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _unified(payment_required: bool, token: str | None = "tok") -> dict:
    return {
        "auth_token": token,
        "auth_user": {"id": "user-1", "email": "a@x.com"},
        "payment_user": {"payment_required": payment_required, "has_valid_invite": False},
    }


class FakeApiClient:
    def __init__(self, me_responses: list):
        self.me_responses = list(me_responses)
        self.me_calls = 0

    def login(self, *, email: str, password: str) -> dict:
        return _unified(True)

    def get_current_user(self, *, token: str) -> dict:
        self.me_calls += 1
        response = self.me_responses.pop(0) if len(self.me_responses) > 1 else self.me_responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _manager(api_client, clock: FakeClock | None = None) -> AuthFlowManager:
    return AuthFlowManager(
        identity_cache=InMemorySessionCache(),
        entitlement_cache=InMemorySessionCache(),
        api_client=api_client,
        entitlement_ttl=timedelta(minutes=5),
        clock=clock or FakeClock(),
    )


def test_register_then_chat_redirects_to_payment(api):
    manager = _manager(AuthApiClient(http_client=api.client))

    manager.register(email="a@x.com", password="Str0ngPassw0rd!!")
    manager.clear_session()
    manager.login(email="a@x.com", password="Str0ngPassw0rd!!")

    assert manager.is_authenticated() is True
    assert manager.needs_payment() is True
    assert manager.redirect_for("/chat") == "/payment"


def test_invited_user_does_not_need_payment(api):
    seed_invites(api.engine, emails=["b@x.com"], expires_in_days=14)
    manager = _manager(AuthApiClient(http_client=api.client))

    manager.register(email="b@x.com", password="Str0ngPassw0rd!!")
    manager.clear_session()
    manager.login(email="b@x.com", password="Str0ngPassw0rd!!")

    assert manager.needs_payment() is False
    assert manager.redirect_for("/chat") is None
    assert manager.redirect_for("/login") == "/chat"


def test_signed_out_visitor_needs_login():
    manager = _manager(FakeApiClient([_unified(False)]))

    assert manager.needs_payment() is True
    assert manager.redirect_for("/chat") == "/login"


def test_fresh_entitlement_is_served_from_cache():
    clock = FakeClock()
    api_client = FakeApiClient([_unified(False)])
    manager = _manager(api_client, clock)
    manager.login(email="a@x.com", password="pw")

    clock.advance(minutes=4)

    assert manager.needs_payment() is True
    assert api_client.me_calls == 0


def test_stale_entitlement_is_refreshed():
    clock = FakeClock()
    api_client = FakeApiClient([_unified(False, token=None)])
    manager = _manager(api_client, clock)
    manager.login(email="a@x.com", password="pw")

    clock.advance(minutes=5)

    assert manager.needs_payment() is False
    assert api_client.me_calls == 1
    assert manager.needs_payment() is False
    assert api_client.me_calls == 1


def test_invalidated_entitlement_is_refetched():
    api_client = FakeApiClient([_unified(False, token=None)])
    manager = _manager(api_client)
    manager.login(email="a@x.com", password="pw")

    manager.invalidate_entitlement()

    assert manager.needs_payment() is False
    assert api_client.me_calls == 1


def test_rejected_session_is_cleared():
    clock = FakeClock()
    manager = _manager(FakeApiClient([ApiError(401, "Invalid or expired token.")]), clock)
    manager.login(email="a@x.com", password="pw")
    clock.advance(minutes=10)

    assert manager.needs_payment() is True
    assert manager.is_authenticated() is False
    assert manager.access_token is None
    assert manager.redirect_for("/chat") == "/login"


def test_refresh_failure_fails_closed_but_keeps_session():
    clock = FakeClock()
    manager = _manager(FakeApiClient([httpx.ConnectError("offline")]), clock)
    manager.login(email="a@x.com", password="pw")
    clock.advance(minutes=10)

    assert manager.needs_payment() is True
    assert manager.is_authenticated() is True


def test_concurrent_stale_readers_share_one_refresh():
    clock = FakeClock()

    class SlowApiClient(FakeApiClient):
        def get_current_user(self, *, token: str) -> dict:
            time.sleep(0.05)
            return super().get_current_user(token=token)

    api_client = SlowApiClient([_unified(False, token=None)])
    manager = _manager(api_client, clock)
    manager.login(email="a@x.com", password="pw")
    clock.advance(minutes=6)

    results: list[bool] = []
    threads = [threading.Thread(target=lambda: results.append(manager.needs_payment())) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results == [False] * 8
    assert api_client.me_calls == 1


def test_concurrent_stale_readers_share_one_failed_refresh():
    clock = FakeClock()
    release = threading.Event()

    class BlockedApiClient(FakeApiClient):
        def get_current_user(self, *, token: str) -> dict:
            release.wait(timeout=5)
            return super().get_current_user(token=token)

    api_client = BlockedApiClient([httpx.ConnectError("offline")])
    manager = _manager(api_client, clock)
    manager.login(email="a@x.com", password="pw")
    clock.advance(minutes=6)

    results: list[bool] = []
    threads = [threading.Thread(target=lambda: results.append(manager.needs_payment())) for _ in range(8)]
    for thread in threads:
        thread.start()
    time.sleep(0.1)
    release.set()
    for thread in threads:
        thread.join()

    assert results == [True] * 8
    assert api_client.me_calls == 1
    assert manager.is_authenticated() is True

    # A later reader is not a waiter on that attempt and tries again.
    assert manager.needs_payment() is True
    assert api_client.me_calls == 2
