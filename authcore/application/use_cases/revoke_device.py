from __future__ import annotations

import logging

from authcore.application.dto.cli import RevokeDeviceInput
from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.domain.entities.device import CLIDevice
from authcore.domain.exceptions import DeviceNotFoundError, DeviceOwnershipError

from .auth_common import utcnow


logger = logging.getLogger(__name__)


class RevokeDeviceUseCase:
    def __init__(self, *, device_flow_port: DeviceFlowPort):
        self._device_flow_port = device_flow_port

    def execute(self, command: RevokeDeviceInput) -> CLIDevice:
        device = self._device_flow_port.get_device(device_id=command.device_id)
        if device is None:
            raise DeviceNotFoundError("Device not found.")
        if device.user_id != command.user_id:
            raise DeviceOwnershipError("Device belongs to another account.")
        if device.is_revoked:
            return device

        self._device_flow_port.revoke_device(device_id=device.id, revoked_at=utcnow())
        logger.info("revoke_device: revoked device_id=%s user_id=%s", device.id, command.user_id)
        return self._device_flow_port.get_device(device_id=device.id) or device
