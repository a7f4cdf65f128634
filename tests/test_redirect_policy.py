from __future__ import annotations

import itertools

import pytest

from authcore.client.redirect_policy import normalize_route, resolve_redirect


ROUTES = [
    "/",
    "",
    "/login",
    "/register",
    "/chat",
    "/chat/123",
    "/payment",
    "/payment/success",
    "/account",
    "/cli/authorize?state=abc",
    "/auth/oauth/callback?token=t",
    "/settings/",
    "chat",
    "/unknown/deep/path",
]


@pytest.mark.parametrize(
    "route,authenticated,entitled,expected",
    [
        ("/chat", False, False, "/login"),
        ("/login", False, False, None),
        ("/register", False, False, None),
        ("/", False, False, "/login"),
        ("/chat", True, False, "/payment"),
        ("/chat", True, True, None),
        ("/", True, True, "/chat"),
        ("/", True, False, "/payment"),
        ("/login", True, True, "/chat"),
        ("/login", True, False, "/payment"),
        ("/payment", True, False, None),
        ("/payment", True, True, "/chat"),
        ("/payment/success", True, True, None),
        ("/account", True, False, None),
        ("/cli/authorize?state=abc", True, False, None),
        ("/cli/authorize", False, False, "/login"),
        ("/auth/oauth/callback?token=t", False, False, None),
        ("/auth/oauth/callback", True, False, None),
    ],
)
def test_resolve_redirect(route, authenticated, entitled, expected):
    assert resolve_redirect(route, authenticated, entitled) == expected


def test_signed_in_unentitled_user_is_sent_to_payment_from_chat():
    assert resolve_redirect("/chat", authenticated=True, entitled=False) == "/payment"


def test_applying_policy_to_its_own_target_is_a_fixed_point():
    for route, authenticated, entitled in itertools.product(ROUTES, (False, True), (False, True)):
        target = resolve_redirect(route, authenticated, entitled)
        if target is not None:
            assert resolve_redirect(target, authenticated, entitled) is None, (route, authenticated, entitled)


def test_normalize_route():
    assert normalize_route("") == "/"
    assert normalize_route("chat") == "/chat"
    assert normalize_route("/chat/?x=1") == "/chat"
    assert normalize_route("https://app.example.com/payment#top") == "/payment"
    assert normalize_route("/") == "/"
