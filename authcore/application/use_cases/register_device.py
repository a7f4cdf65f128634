from __future__ import annotations

import logging
from uuid import uuid4

from authcore.application.dto.cli import RegisterDeviceInput
from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.domain.entities.device import CLIDevice

from .auth_common import utcnow


logger = logging.getLogger(__name__)

MAX_FINGERPRINT_LENGTH = 255
MAX_DEVICE_NAME_LENGTH = 120


class RegisterDeviceUseCase:
    def __init__(self, *, device_flow_port: DeviceFlowPort):
        self._device_flow_port = device_flow_port

    def execute(self, command: RegisterDeviceInput) -> CLIDevice:
        fingerprint = command.device_fingerprint.strip()
        name = command.device_name.strip()
        if not fingerprint or len(fingerprint) > MAX_FINGERPRINT_LENGTH:
            raise ValueError("device_fingerprint is required.")
        if not name or len(name) > MAX_DEVICE_NAME_LENGTH:
            raise ValueError("device_name is required.")

        def _tx(port: DeviceFlowPort) -> CLIDevice:
            existing = port.find_device(user_id=command.user_id, device_fingerprint=fingerprint)
            if existing is not None:
                return existing
            device = port.create_device(
                device_id=str(uuid4()),
                user_id=command.user_id,
                device_name=name,
                device_fingerprint=fingerprint,
                created_at=utcnow(),
            )
            logger.info(
                "register_device: created device_id=%s provisional=%s",
                device.id,
                device.is_provisional,
            )
            return device

        return self._device_flow_port.execute_in_transaction(_tx)
