from __future__ import annotations

from typing import Any, Mapping

from authcore.domain.entities.device import CLIAuthFlow, CLIDevice, CLIRefreshToken

from .common import as_str, from_iso


def map_row_to_device(row: Mapping[str, Any]) -> CLIDevice:
    user_id = row.get("user_id")
    return CLIDevice(
        id=as_str(row["id"]),
        user_id=as_str(user_id) if user_id is not None else None,
        device_name=row["device_name"],
        device_fingerprint=row["device_fingerprint"],
        last_used_at=from_iso(row.get("last_used_at")),
        created_at=from_iso(row["created_at"]),
        revoked_at=from_iso(row.get("revoked_at")),
    )


def map_row_to_flow(row: Mapping[str, Any]) -> CLIAuthFlow:
    user_id = row.get("user_id")
    return CLIAuthFlow(
        id=as_str(row["id"]),
        device_id=as_str(row["device_id"]),
        state=row["state"],
        code_challenge=row["code_challenge"],
        challenge_method=row["challenge_method"],
        status=row["status"],
        auth_code=row.get("auth_code"),
        user_id=as_str(user_id) if user_id is not None else None,
        expires_at=from_iso(row["expires_at"]),
        created_at=from_iso(row["created_at"]),
        completed_at=from_iso(row.get("completed_at")),
        redeemed_at=from_iso(row.get("redeemed_at")),
    )


def map_row_to_refresh_token(row: Mapping[str, Any]) -> CLIRefreshToken:
    return CLIRefreshToken(
        id=as_str(row["id"]),
        device_id=as_str(row["device_id"]),
        token_hash=row["token_hash"],
        expires_at=from_iso(row["expires_at"]),
        last_used_at=from_iso(row.get("last_used_at")),
        created_at=from_iso(row["created_at"]),
        revoked_at=from_iso(row.get("revoked_at")),
    )
