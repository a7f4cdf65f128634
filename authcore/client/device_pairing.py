from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from authcore.domain.services.pkce import SUPPORTED_CHALLENGE_METHOD, compute_code_challenge

from .api_client import ApiError, AuthApiClient
from .session_cache import SessionCache


logger = logging.getLogger(__name__)

DEVICE_KEY = "cli_device"
TOKENS_KEY = "cli_tokens"


class PairingExpiredError(RuntimeError):
    pass


def generate_pkce_pair() -> tuple[str, str]:
    verifier = secrets.token_urlsafe(64)
    return verifier, compute_code_challenge(verifier)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DevicePairingClient:
    def __init__(
        self,
        *,
        api_client: AuthApiClient,
        token_cache: SessionCache,
        device_name: str,
        device_fingerprint: str,
        initial_interval: float = 2.0,
        max_interval: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._api_client = api_client
        self._token_cache = token_cache
        self._device_name = device_name
        self._device_fingerprint = device_fingerprint
        self._initial_interval = initial_interval
        self._max_interval = max_interval
        self._sleep = sleep
        self._clock = clock

    def pair(self, *, on_verification_url: Callable[[str], None]) -> dict:
        """Run the whole device pairing and return the stored token set."""
        verifier, challenge = generate_pkce_pair()
        flow = self._start_flow(challenge)
        device_id = flow["device_id"]
        on_verification_url(flow["verification_url"])
        logger.info("device_pairing: flow_started flow_id=%s device_id=%s", flow["flow_id"], device_id)

        expires_at = _parse_dt(flow["expires_at"])
        interval = self._initial_interval
        while True:
            try:
                result = self._api_client.poll_device_flow(flow_id=flow["flow_id"], code_verifier=verifier)
            except ApiError as exc:
                if exc.status_code == 410:
                    raise PairingExpiredError(exc.message) from exc
                raise

            if result["status"] == "completed" and result.get("tokens"):
                tokens = result["tokens"]
                self._token_cache.set(TOKENS_KEY, tokens)
                logger.info("device_pairing: paired device_id=%s", tokens["device_id"])
                return tokens
            if result["status"] == "expired":
                raise PairingExpiredError("Device authorization expired before it was approved.")

            remaining = (expires_at - self._clock()).total_seconds()
            if remaining <= 0:
                raise PairingExpiredError("Device authorization expired before it was approved.")
            self._sleep(min(interval, remaining))
            interval = min(interval * 2, self._max_interval)

    def refresh(self) -> dict:
        tokens = self._stored_tokens()
        if tokens is None:
            raise PairingExpiredError("Device is not paired.")
        try:
            rotated = self._api_client.refresh_device_token(
                device_id=tokens["device_id"],
                refresh_token=tokens["refresh_token"],
            )
        except ApiError as exc:
            if exc.status_code in (401, 409):
                logger.warning("device_pairing: refresh_rejected status=%s", exc.status_code)
                self._token_cache.clear(TOKENS_KEY)
            raise
        self._token_cache.set(TOKENS_KEY, rotated)
        return rotated

    def access_token(self, *, leeway: timedelta = timedelta(seconds=30)) -> str:
        tokens = self._stored_tokens()
        if tokens is None:
            raise PairingExpiredError("Device is not paired.")
        if _parse_dt(tokens["access_expires_at"]) - leeway <= self._clock():
            tokens = self.refresh()
        return tokens["access_token"]

    def _stored_tokens(self) -> dict | None:
        entry = self._token_cache.get(TOKENS_KEY)
        return entry.value if entry else None

    def _ensure_device(self) -> str:
        entry = self._token_cache.get(DEVICE_KEY)
        if entry is not None and entry.value.get("fingerprint") == self._device_fingerprint:
            return entry.value["device_id"]
        device = self._api_client.register_device(
            device_fingerprint=self._device_fingerprint,
            device_name=self._device_name,
        )
        self._token_cache.set(DEVICE_KEY, {"device_id": device["id"], "fingerprint": self._device_fingerprint})
        return device["id"]

    def _start_flow(self, challenge: str) -> dict:
        device_id = self._ensure_device()
        try:
            flow = self._api_client.start_device_flow(
                device_id=device_id,
                code_challenge=challenge,
                code_challenge_method=SUPPORTED_CHALLENGE_METHOD,
            )
        except ApiError as exc:
            if exc.status_code not in (401, 404):
                raise
            # The remembered device was revoked or deleted server-side.
            logger.info("device_pairing: device_rejected device_id=%s status=%s", device_id, exc.status_code)
            self._token_cache.clear(DEVICE_KEY)
            device_id = self._ensure_device()
            flow = self._api_client.start_device_flow(
                device_id=device_id,
                code_challenge=challenge,
                code_challenge_method=SUPPORTED_CHALLENGE_METHOD,
            )
        return {**flow, "device_id": device_id}
