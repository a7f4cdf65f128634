from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol, TypeVar

from authcore.domain.entities.device import CLIAuthFlow, CLIDevice, CLIRefreshToken


TResult = TypeVar("TResult")


class DeviceFlowPort(Protocol):
    def execute_in_transaction(self, fn: Callable[[DeviceFlowPort], TResult]) -> TResult:
        ...

    def get_device(self, *, device_id: str) -> CLIDevice | None:
        ...

    def find_device(self, *, user_id: str | None, device_fingerprint: str) -> CLIDevice | None:
        """Non-revoked device for the fingerprint; ``user_id=None`` looks at provisional devices."""
        ...

    def list_devices_for_user(self, *, user_id: str) -> list[CLIDevice]:
        ...

    def create_device(
        self,
        *,
        device_id: str,
        user_id: str | None,
        device_name: str,
        device_fingerprint: str,
        created_at: datetime,
    ) -> CLIDevice:
        ...

    def assign_device_owner(self, *, device_id: str, user_id: str) -> bool:
        """Bind a provisional device; False when another user already owns it."""
        ...

    def touch_device(self, *, device_id: str, used_at: datetime) -> None:
        ...

    def revoke_device(self, *, device_id: str, revoked_at: datetime) -> None:
        ...

    def create_flow(
        self,
        *,
        flow_id: str,
        device_id: str,
        state: str,
        code_challenge: str,
        challenge_method: str,
        expires_at: datetime,
        created_at: datetime,
    ) -> CLIAuthFlow:
        ...

    def get_flow(self, *, flow_id: str) -> CLIAuthFlow | None:
        ...

    def get_flow_by_state(self, *, state: str) -> CLIAuthFlow | None:
        ...

    def complete_flow(
        self,
        *,
        flow_id: str,
        auth_code: str,
        user_id: str,
        completed_at: datetime,
    ) -> bool:
        """pending -> completed; False when the flow was no longer pending."""
        ...

    def expire_flow(self, *, flow_id: str) -> None:
        ...

    def redeem_flow(self, *, flow_id: str, redeemed_at: datetime) -> bool:
        """Mark a completed flow redeemed; False when it already was."""
        ...

    def create_refresh_token(
        self,
        *,
        token_id: str,
        device_id: str,
        token_hash: str,
        expires_at: datetime,
        created_at: datetime,
    ) -> CLIRefreshToken:
        ...

    def get_refresh_token_by_hash(self, *, token_hash: str) -> CLIRefreshToken | None:
        ...

    def revoke_refresh_token(self, *, token_id: str, revoked_at: datetime) -> bool:
        """Conditional revoke; False when the token was already revoked."""
        ...
