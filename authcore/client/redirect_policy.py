from __future__ import annotations

from urllib.parse import urlsplit


LOGIN_ROUTE = "/login"
PAYMENT_ROUTE = "/payment"
SUCCESS_ROUTE = "/chat"
ROOT_ROUTE = "/"

# Auth forms: only for signed-out visitors.
PUBLIC_ROUTES = ("/login", "/register")
# Reachable in any state; the OAuth landing page must read its query first.
OPEN_ROUTES = ("/auth/oauth/callback",)
# Signed-in pages that do not need an active entitlement.
PAYMENT_EXEMPT_PREFIXES = ("/payment", "/account", "/cli/authorize")


def normalize_route(route: str) -> str:
    path = urlsplit(route or ROOT_ROUTE).path or ROOT_ROUTE
    if not path.startswith("/"):
        path = f"/{path}"
    if len(path) > 1:
        path = path.rstrip("/") or ROOT_ROUTE
    return path


def _matches(path: str, prefixes: tuple[str, ...]) -> bool:
    return any(path == prefix or path.startswith(f"{prefix}/") for prefix in prefixes)


def resolve_redirect(route: str, authenticated: bool, entitled: bool) -> str | None:
    """Where to send a visitor of ``route``; None means stay.

    Every target is a fixed point: resolving it again with the same inputs
    returns None.
    """
    path = normalize_route(route)
    if _matches(path, OPEN_ROUTES):
        return None

    if not authenticated:
        if path in PUBLIC_ROUTES:
            return None
        return LOGIN_ROUTE

    home = SUCCESS_ROUTE if entitled else PAYMENT_ROUTE
    if path == ROOT_ROUTE or path in PUBLIC_ROUTES:
        return home
    if path == PAYMENT_ROUTE:
        return SUCCESS_ROUTE if entitled else None
    if not entitled and not _matches(path, PAYMENT_EXEMPT_PREFIXES):
        return PAYMENT_ROUTE
    return None
