from __future__ import annotations

from datetime import datetime

from sqlalchemy import text

from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.domain.entities.device import CLIAuthFlow, CLIDevice, CLIRefreshToken
from authcore.infrastructure.db.mappers.common import to_iso
from authcore.infrastructure.db.mappers.devices_mapper import (
    map_row_to_device,
    map_row_to_flow,
    map_row_to_refresh_token,
)

from .base import SqlRepository


DEVICE_COLUMNS = "id, user_id, device_name, device_fingerprint, last_used_at, created_at, revoked_at"
FLOW_COLUMNS = (
    "id, device_id, state, code_challenge, challenge_method, status, auth_code, user_id, "
    "expires_at, created_at, completed_at, redeemed_at"
)
REFRESH_COLUMNS = "id, device_id, token_hash, expires_at, last_used_at, created_at, revoked_at"


class SqlDeviceFlowRepository(SqlRepository, DeviceFlowPort):
    def get_device(self, *, device_id: str) -> CLIDevice | None:
        sql = f"SELECT {DEVICE_COLUMNS} FROM cli_devices WHERE id = :device_id LIMIT 1"
        with self._read() as conn:
            row = conn.execute(text(sql), {"device_id": device_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_device(row)

    def find_device(self, *, user_id: str | None, device_fingerprint: str) -> CLIDevice | None:
        owner_clause = "user_id IS NULL" if user_id is None else "user_id = :user_id"
        sql = f"""
            SELECT {DEVICE_COLUMNS}
            FROM cli_devices
            WHERE {owner_clause}
              AND device_fingerprint = :device_fingerprint
              AND revoked_at IS NULL
            ORDER BY created_at DESC
            LIMIT 1
        """
        params = {"device_fingerprint": device_fingerprint}
        if user_id is not None:
            params["user_id"] = user_id
        with self._read() as conn:
            row = conn.execute(text(sql), params).mappings().first()
        if row is None:
            return None
        return map_row_to_device(row)

    def list_devices_for_user(self, *, user_id: str) -> list[CLIDevice]:
        sql = f"""
            SELECT {DEVICE_COLUMNS}
            FROM cli_devices
            WHERE user_id = :user_id
            ORDER BY created_at ASC, id ASC
        """
        with self._read() as conn:
            rows = conn.execute(text(sql), {"user_id": user_id}).mappings().all()
        return [map_row_to_device(row) for row in rows]

    def create_device(
        self,
        *,
        device_id: str,
        user_id: str | None,
        device_name: str,
        device_fingerprint: str,
        created_at: datetime,
    ) -> CLIDevice:
        sql = """
            INSERT INTO cli_devices (id, user_id, device_name, device_fingerprint, created_at)
            VALUES (:id, :user_id, :device_name, :device_fingerprint, :created_at)
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "id": device_id,
                    "user_id": user_id,
                    "device_name": device_name,
                    "device_fingerprint": device_fingerprint,
                    "created_at": to_iso(created_at),
                },
            )
        return CLIDevice(
            id=device_id,
            user_id=user_id,
            device_name=device_name,
            device_fingerprint=device_fingerprint,
            last_used_at=None,
            created_at=created_at,
            revoked_at=None,
        )

    def assign_device_owner(self, *, device_id: str, user_id: str) -> bool:
        sql = """
            UPDATE cli_devices
            SET user_id = :user_id
            WHERE id = :device_id
              AND (user_id IS NULL OR user_id = :user_id)
        """
        with self._write() as conn:
            result = conn.execute(text(sql), {"device_id": device_id, "user_id": user_id})
        return result.rowcount == 1

    def touch_device(self, *, device_id: str, used_at: datetime) -> None:
        sql = "UPDATE cli_devices SET last_used_at = :used_at WHERE id = :device_id"
        with self._write() as conn:
            conn.execute(text(sql), {"device_id": device_id, "used_at": to_iso(used_at)})

    def revoke_device(self, *, device_id: str, revoked_at: datetime) -> None:
        sql = """
            UPDATE cli_devices
            SET revoked_at = :revoked_at
            WHERE id = :device_id
              AND revoked_at IS NULL
        """
        with self._write() as conn:
            conn.execute(text(sql), {"device_id": device_id, "revoked_at": to_iso(revoked_at)})

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
        sql = """
            INSERT INTO cli_auth_flows (
                id, device_id, state, code_challenge, challenge_method, status, expires_at, created_at
            ) VALUES (
                :id, :device_id, :state, :code_challenge, :challenge_method, 'pending', :expires_at, :created_at
            )
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "id": flow_id,
                    "device_id": device_id,
                    "state": state,
                    "code_challenge": code_challenge,
                    "challenge_method": challenge_method,
                    "expires_at": to_iso(expires_at),
                    "created_at": to_iso(created_at),
                },
            )
        return CLIAuthFlow(
            id=flow_id,
            device_id=device_id,
            state=state,
            code_challenge=code_challenge,
            challenge_method=challenge_method,
            status="pending",
            auth_code=None,
            user_id=None,
            expires_at=expires_at,
            created_at=created_at,
            completed_at=None,
            redeemed_at=None,
        )

    def get_flow(self, *, flow_id: str) -> CLIAuthFlow | None:
        sql = f"SELECT {FLOW_COLUMNS} FROM cli_auth_flows WHERE id = :flow_id LIMIT 1"
        with self._read() as conn:
            row = conn.execute(text(sql), {"flow_id": flow_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_flow(row)

    def get_flow_by_state(self, *, state: str) -> CLIAuthFlow | None:
        sql = f"SELECT {FLOW_COLUMNS} FROM cli_auth_flows WHERE state = :state LIMIT 1"
        with self._read() as conn:
            row = conn.execute(text(sql), {"state": state}).mappings().first()
        if row is None:
            return None
        return map_row_to_flow(row)

    def complete_flow(self, *, flow_id: str, auth_code: str, user_id: str, completed_at: datetime) -> bool:
        sql = """
            UPDATE cli_auth_flows
            SET status = 'completed',
                auth_code = :auth_code,
                user_id = :user_id,
                completed_at = :completed_at
            WHERE id = :flow_id
              AND status = 'pending'
        """
        with self._write() as conn:
            result = conn.execute(
                text(sql),
                {
                    "flow_id": flow_id,
                    "auth_code": auth_code,
                    "user_id": user_id,
                    "completed_at": to_iso(completed_at),
                },
            )
        return result.rowcount == 1

    def expire_flow(self, *, flow_id: str) -> None:
        sql = """
            UPDATE cli_auth_flows
            SET status = 'expired'
            WHERE id = :flow_id
              AND status = 'pending'
        """
        with self._write() as conn:
            conn.execute(text(sql), {"flow_id": flow_id})

    def redeem_flow(self, *, flow_id: str, redeemed_at: datetime) -> bool:
        sql = """
            UPDATE cli_auth_flows
            SET redeemed_at = :redeemed_at
            WHERE id = :flow_id
              AND status = 'completed'
              AND redeemed_at IS NULL
        """
        with self._write() as conn:
            result = conn.execute(text(sql), {"flow_id": flow_id, "redeemed_at": to_iso(redeemed_at)})
        return result.rowcount == 1

    def create_refresh_token(
        self,
        *,
        token_id: str,
        device_id: str,
        token_hash: str,
        expires_at: datetime,
        created_at: datetime,
    ) -> CLIRefreshToken:
        sql = """
            INSERT INTO cli_refresh_tokens (id, device_id, token_hash, expires_at, created_at)
            VALUES (:id, :device_id, :token_hash, :expires_at, :created_at)
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "id": token_id,
                    "device_id": device_id,
                    "token_hash": token_hash,
                    "expires_at": to_iso(expires_at),
                    "created_at": to_iso(created_at),
                },
            )
        return CLIRefreshToken(
            id=token_id,
            device_id=device_id,
            token_hash=token_hash,
            expires_at=expires_at,
            last_used_at=None,
            created_at=created_at,
            revoked_at=None,
        )

    def get_refresh_token_by_hash(self, *, token_hash: str) -> CLIRefreshToken | None:
        sql = f"SELECT {REFRESH_COLUMNS} FROM cli_refresh_tokens WHERE token_hash = :token_hash LIMIT 1"
        with self._read() as conn:
            row = conn.execute(text(sql), {"token_hash": token_hash}).mappings().first()
        if row is None:
            return None
        return map_row_to_refresh_token(row)

    def revoke_refresh_token(self, *, token_id: str, revoked_at: datetime) -> bool:
        sql = """
            UPDATE cli_refresh_tokens
            SET revoked_at = :revoked_at,
                last_used_at = :revoked_at
            WHERE id = :token_id
              AND revoked_at IS NULL
        """
        with self._write() as conn:
            result = conn.execute(text(sql), {"token_id": token_id, "revoked_at": to_iso(revoked_at)})
        return result.rowcount == 1
