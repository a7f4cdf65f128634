from __future__ import annotations

import logging
import secrets

from authcore.application.dto.cli import ApproveDeviceFlowInput
from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.domain.entities.device import CLIAuthFlow
from authcore.domain.exceptions import (
    DeviceNotFoundError,
    DeviceOwnershipError,
    DeviceRevokedError,
    FlowExpiredError,
)

from .auth_common import utcnow


logger = logging.getLogger(__name__)


class ApproveDeviceFlowUseCase:
    """Attach a signed-in web user to a pending CLI flow."""

    def __init__(self, *, device_flow_port: DeviceFlowPort):
        self._device_flow_port = device_flow_port

    def execute(self, command: ApproveDeviceFlowInput) -> CLIAuthFlow:
        def _tx(port: DeviceFlowPort) -> CLIAuthFlow:
            now = utcnow()
            flow = port.get_flow_by_state(state=command.state)
            if flow is None or flow.status != "pending" or flow.is_past_expiry(now):
                raise FlowExpiredError("CLI authorization request is no longer pending.")

            device = port.get_device(device_id=flow.device_id)
            if device is None:
                raise DeviceNotFoundError("Device not found.")
            if device.is_revoked:
                raise DeviceRevokedError("Device has been revoked.")
            if device.user_id is not None and device.user_id != command.user_id:
                raise DeviceOwnershipError("Device is paired with another account.")
            if device.user_id is None and not port.assign_device_owner(
                device_id=device.id,
                user_id=command.user_id,
            ):
                raise DeviceOwnershipError("Device is paired with another account.")

            if not port.complete_flow(
                flow_id=flow.id,
                auth_code=secrets.token_urlsafe(32),
                user_id=command.user_id,
                completed_at=now,
            ):
                raise FlowExpiredError("CLI authorization request is no longer pending.")
            return port.get_flow(flow_id=flow.id) or flow

        flow = self._device_flow_port.execute_in_transaction(_tx)
        logger.info(
            "approve_device_flow: completed flow_id=%s device_id=%s user_id=%s",
            flow.id,
            flow.device_id,
            command.user_id,
        )
        return flow
