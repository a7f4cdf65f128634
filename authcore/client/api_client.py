from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx


logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class AuthApiClient:
    """Thin httpx client for the auth API.

    Only idempotent GETs are retried, and only on transport errors; a
    mutating call that times out may already have been applied server-side.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        http_client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client = http_client or httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )
        self._max_retries = max_retries
        self._sleep = sleep

    def close(self) -> None:
        self._client.close()

    def register(self, *, email: str, password: str) -> dict:
        return self._send("POST", "/auth/register", json={"email": email, "password": password})

    def login(self, *, email: str, password: str) -> dict:
        return self._send("POST", "/auth/login", json={"email": email, "password": password})

    def verify(self, *, token: str) -> dict:
        return self._get("/auth/verify", token=token)

    def get_current_user(self, *, token: str) -> dict:
        return self._get("/users/me", token=token)

    def register_device(self, *, device_fingerprint: str, device_name: str, token: str | None = None) -> dict:
        return self._send(
            "POST",
            "/cli/devices",
            json={"device_fingerprint": device_fingerprint, "device_name": device_name},
            token=token,
        )

    def start_device_flow(self, *, device_id: str, code_challenge: str, code_challenge_method: str = "S256") -> dict:
        return self._send(
            "POST",
            "/cli/auth/start",
            json={
                "device_id": device_id,
                "code_challenge": code_challenge,
                "code_challenge_method": code_challenge_method,
            },
        )

    def complete_device_flow(self, *, state: str, token: str) -> dict:
        return self._send("POST", "/cli/auth/complete", json={"state": state}, token=token)

    def poll_device_flow(self, *, flow_id: str, code_verifier: str) -> dict:
        return self._get("/cli/auth/poll", params={"flow_id": flow_id, "code_verifier": code_verifier})

    def refresh_device_token(self, *, device_id: str, refresh_token: str) -> dict:
        return self._send(
            "POST",
            "/cli/auth/refresh",
            json={"device_id": device_id, "refresh_token": refresh_token},
        )

    def revoke_device(self, *, device_id: str, token: str) -> dict:
        return self._send("POST", f"/cli/devices/{device_id}/revoke", token=token)

    def _get(self, path: str, *, token: str | None = None, params: dict | None = None) -> dict:
        attempts = max(1, self._max_retries)
        delay = 0.25
        last_exc: httpx.TransportError | None = None

        for attempt in range(1, attempts + 1):
            try:
                return self._send("GET", path, token=token, params=params)
            except httpx.TransportError as exc:
                last_exc = exc
                if attempt == attempts:
                    break
                logger.warning("auth_api_client: get_retry path=%s attempt=%s/%s error=%s", path, attempt, attempts, exc)
                self._sleep(delay)
                delay *= 2

        raise last_exc

    def _send(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        json: Any = None,
        params: dict | None = None,
    ) -> dict:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        response = self._client.request(method, path, json=json, params=params, headers=headers)
        if response.status_code >= 400:
            raise ApiError(response.status_code, _error_message(response))
        return response.json()


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return response.reason_phrase
