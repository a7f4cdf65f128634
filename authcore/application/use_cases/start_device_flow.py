from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from urllib.parse import urlencode
from uuid import uuid4

from authcore.application.dto.cli import StartDeviceFlowInput, StartDeviceFlowOutput
from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.domain.exceptions import DeviceNotFoundError, DeviceRevokedError
from authcore.domain.services.pkce import SUPPORTED_CHALLENGE_METHOD, is_valid_pkce_value

from .auth_common import utcnow


logger = logging.getLogger(__name__)


class StartDeviceFlowUseCase:
    def __init__(
        self,
        *,
        device_flow_port: DeviceFlowPort,
        flow_ttl_minutes: int,
        verification_url: str,
    ):
        self._device_flow_port = device_flow_port
        self._flow_ttl_minutes = flow_ttl_minutes
        self._verification_url = verification_url

    def execute(self, command: StartDeviceFlowInput) -> StartDeviceFlowOutput:
        if command.code_challenge_method != SUPPORTED_CHALLENGE_METHOD:
            raise ValueError("Only the S256 code challenge method is supported.")
        if not is_valid_pkce_value(command.code_challenge):
            raise ValueError("code_challenge must be a base64url SHA-256 digest.")

        device = self._device_flow_port.get_device(device_id=command.device_id)
        if device is None:
            raise DeviceNotFoundError("Device not found.")
        if device.is_revoked:
            raise DeviceRevokedError("Device has been revoked.")

        now = utcnow()
        state = secrets.token_urlsafe(32)
        flow = self._device_flow_port.create_flow(
            flow_id=str(uuid4()),
            device_id=device.id,
            state=state,
            code_challenge=command.code_challenge,
            challenge_method=SUPPORTED_CHALLENGE_METHOD,
            expires_at=now + timedelta(minutes=self._flow_ttl_minutes),
            created_at=now,
        )
        logger.info("start_device_flow: started flow_id=%s device_id=%s", flow.id, device.id)
        return StartDeviceFlowOutput(
            flow_id=flow.id,
            state=flow.state,
            verification_url=f"{self._verification_url}?{urlencode({'state': flow.state})}",
            expires_at=flow.expires_at,
        )
