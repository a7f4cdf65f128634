from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable

import httpx

from .api_client import ApiError, AuthApiClient
from .redirect_policy import resolve_redirect
from .session_cache import SessionCache


logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"
USER_KEY = "auth_user"
PAYMENT_KEY = "payment_user"
DEFAULT_ENTITLEMENT_TTL = timedelta(minutes=5)


class AuthFlowManager:
    """Client-side session: identity in one cache, entitlement in another.

    The entitlement entry is the only copy of ``payment_required``; once it is
    older than ``entitlement_ttl`` it is refreshed from ``GET /users/me``.
    Concurrent stale readers share a single refresh.
    """

    def __init__(
        self,
        *,
        identity_cache: SessionCache,
        entitlement_cache: SessionCache,
        api_client: AuthApiClient,
        entitlement_ttl: timedelta = DEFAULT_ENTITLEMENT_TTL,
        clock: Callable[[], datetime] | None = None,
    ):
        self._identity_cache = identity_cache
        self._entitlement_cache = entitlement_cache
        self._api_client = api_client
        self._entitlement_ttl = entitlement_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._refresh_lock = Lock()
        # Bumped after every refresh attempt; waiters that saw an older value
        # reuse the outcome instead of calling again.
        self._refresh_generation = 0
        self._last_refresh_result = True

    @property
    def access_token(self) -> str | None:
        entry = self._identity_cache.get(TOKEN_KEY)
        return entry.value if entry else None

    @property
    def current_user(self) -> dict | None:
        entry = self._identity_cache.get(USER_KEY)
        return entry.value if entry else None

    def handle_auth_response(self, unified: dict) -> None:
        now = self._clock()
        token = unified.get("auth_token")
        if token:
            self._identity_cache.set(TOKEN_KEY, token, fetched_at=now)
        self._identity_cache.set(USER_KEY, unified["auth_user"], fetched_at=now)
        self._entitlement_cache.set(PAYMENT_KEY, unified["payment_user"], fetched_at=now)

    def login(self, *, email: str, password: str) -> dict:
        unified = self._api_client.login(email=email, password=password)
        self.handle_auth_response(unified)
        return unified

    def register(self, *, email: str, password: str) -> dict:
        unified = self._api_client.register(email=email, password=password)
        self.handle_auth_response(unified)
        return unified

    def is_authenticated(self) -> bool:
        return self.access_token is not None and self.current_user is not None

    def needs_payment(self) -> bool:
        if not self.is_authenticated():
            return True

        cached = self._fresh_entitlement()
        if cached is not None:
            return bool(cached["payment_required"])

        seen_generation = self._refresh_generation
        with self._refresh_lock:
            if self._refresh_generation != seen_generation:
                # A refresh finished while this caller waited, failed or not.
                return self._last_refresh_result
            cached = self._fresh_entitlement()
            if cached is not None:
                return bool(cached["payment_required"])
            result = self._refresh_entitlement()
            self._last_refresh_result = result
            self._refresh_generation += 1
            return result

    def redirect_for(self, route: str) -> str | None:
        entitled = self.is_authenticated() and not self.needs_payment()
        # Evaluated after needs_payment(), which signs out on a 401.
        return resolve_redirect(route, self.is_authenticated(), entitled)

    def clear_session(self) -> None:
        self._identity_cache.clear()
        self._entitlement_cache.clear()

    def invalidate_entitlement(self) -> None:
        self._entitlement_cache.clear(PAYMENT_KEY)

    def _fresh_entitlement(self) -> dict | None:
        entry = self._entitlement_cache.get(PAYMENT_KEY)
        if entry is None or entry.is_stale(self._entitlement_ttl, self._clock()):
            return None
        return entry.value

    def _refresh_entitlement(self) -> bool:
        token = self.access_token
        if token is None:
            return True
        try:
            unified = self._api_client.get_current_user(token=token)
        except ApiError as exc:
            if exc.status_code == 401:
                logger.info("auth_flow_manager: session_rejected clearing_session")
                self.clear_session()
            else:
                logger.warning("auth_flow_manager: entitlement_refresh_failed status=%s", exc.status_code)
            return True
        except httpx.HTTPError as exc:
            logger.warning("auth_flow_manager: entitlement_refresh_failed error=%s", exc)
            return True

        now = self._clock()
        self._identity_cache.set(USER_KEY, unified["auth_user"], fetched_at=now)
        self._entitlement_cache.set(PAYMENT_KEY, unified["payment_user"], fetched_at=now)
        return bool(unified["payment_user"]["payment_required"])
