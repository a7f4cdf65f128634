from __future__ import annotations

from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.domain.entities.device import CLIDevice


class ListDevicesUseCase:
    def __init__(self, *, device_flow_port: DeviceFlowPort):
        self._device_flow_port = device_flow_port

    def execute(self, *, user_id: str) -> list[CLIDevice]:
        return self._device_flow_port.list_devices_for_user(user_id=user_id)
