from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from authcore.application.dto.cli import CLITokensOutput
from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.application.ports.token_port import TokenPort
from authcore.domain.entities.user import User

from .auth_common import CLI_SCOPE


def issue_cli_tokens(
    *,
    user: User,
    device_id: str,
    device_flow_port: DeviceFlowPort,
    token_port: TokenPort,
    now: datetime,
) -> CLITokensOutput:
    access = token_port.issue(
        user_id=user.id,
        email=user.email,
        scope=CLI_SCOPE,
        now=now,
        device_id=device_id,
    )
    refresh_token = token_port.generate_refresh_token()
    refresh_expires_at = token_port.refresh_token_expires_at(now=now)
    device_flow_port.create_refresh_token(
        token_id=str(uuid4()),
        device_id=device_id,
        token_hash=token_port.hash_refresh_token(refresh_token=refresh_token),
        expires_at=refresh_expires_at,
        created_at=now,
    )
    device_flow_port.touch_device(device_id=device_id, used_at=now)
    return CLITokensOutput(
        access_token=access.token,
        access_expires_at=access.expires_at,
        refresh_token=refresh_token,
        refresh_expires_at=refresh_expires_at,
        device_id=device_id,
        user_id=user.id,
    )
