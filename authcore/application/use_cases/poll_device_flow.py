from __future__ import annotations

import logging

from authcore.application.dto.cli import CLITokensOutput, PollDeviceFlowInput, PollDeviceFlowOutput
from authcore.application.ports.credential_store_port import CredentialStorePort
from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.application.ports.token_port import TokenPort
from authcore.domain.exceptions import (
    DeviceNotFoundError,
    DeviceRevokedError,
    FlowExpiredError,
    PKCEMismatchError,
)
from authcore.domain.services.pkce import verify_code_verifier

from .auth_common import utcnow
from .cli_common import issue_cli_tokens


logger = logging.getLogger(__name__)


class PollDeviceFlowUseCase:
    def __init__(
        self,
        *,
        device_flow_port: DeviceFlowPort,
        credential_store: CredentialStorePort,
        token_port: TokenPort,
    ):
        self._device_flow_port = device_flow_port
        self._credential_store = credential_store
        self._token_port = token_port

    def execute(self, command: PollDeviceFlowInput) -> PollDeviceFlowOutput:
        flow = self._device_flow_port.get_flow(flow_id=command.flow_id)
        if flow is None:
            raise FlowExpiredError("Unknown or expired CLI authorization flow.")
        if flow.redeemed_at is not None:
            raise FlowExpiredError("CLI authorization flow was already redeemed.")
        if flow.status == "expired":
            return PollDeviceFlowOutput(status="expired")

        if flow.status == "pending":
            # The TTL bounds approval only; an approved flow stays redeemable.
            if flow.is_past_expiry(utcnow()):
                self._device_flow_port.expire_flow(flow_id=flow.id)
                logger.info("poll_device_flow: expired flow_id=%s", flow.id)
                return PollDeviceFlowOutput(status="expired")
            return PollDeviceFlowOutput(status="pending")

        if not verify_code_verifier(code_verifier=command.code_verifier, code_challenge=flow.code_challenge):
            logger.warning("poll_device_flow: pkce_mismatch flow_id=%s", flow.id)
            raise PKCEMismatchError("code_verifier does not match the code challenge.")

        user = self._credential_store.get_user_by_id(user_id=flow.user_id) if flow.user_id else None
        if user is None:
            raise FlowExpiredError("CLI authorization flow has no approved user.")

        def _tx(port: DeviceFlowPort) -> CLITokensOutput:
            tx_now = utcnow()
            device = port.get_device(device_id=flow.device_id)
            if device is None:
                raise DeviceNotFoundError("Device not found.")
            if device.is_revoked:
                raise DeviceRevokedError("Device has been revoked.")
            if not port.redeem_flow(flow_id=flow.id, redeemed_at=tx_now):
                raise FlowExpiredError("CLI authorization flow was already redeemed.")
            return issue_cli_tokens(
                user=user,
                device_id=device.id,
                device_flow_port=port,
                token_port=self._token_port,
                now=tx_now,
            )

        tokens = self._device_flow_port.execute_in_transaction(_tx)
        logger.info("poll_device_flow: redeemed flow_id=%s device_id=%s", flow.id, flow.device_id)
        return PollDeviceFlowOutput(status="completed", tokens=tokens)
