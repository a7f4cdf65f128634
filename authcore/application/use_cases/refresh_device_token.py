from __future__ import annotations

import logging

from authcore.application.dto.cli import CLITokensOutput, RefreshDeviceTokenInput
from authcore.application.ports.credential_store_port import CredentialStorePort
from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.application.ports.token_port import TokenPort
from authcore.domain.exceptions import (
    DeviceRevokedError,
    InvalidCredentialsError,
    RefreshTokenReusedError,
    TokenExpiredError,
)

from .auth_common import utcnow
from .cli_common import issue_cli_tokens


logger = logging.getLogger(__name__)


class RefreshDeviceTokenUseCase:
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

    def execute(self, command: RefreshDeviceTokenInput) -> CLITokensOutput:
        token = command.refresh_token.strip()
        if not token:
            raise InvalidCredentialsError("Missing refresh token.")

        token_hash = self._token_port.hash_refresh_token(refresh_token=token)

        def _tx(port: DeviceFlowPort) -> CLITokensOutput:
            now = utcnow()
            stored = port.get_refresh_token_by_hash(token_hash=token_hash)
            if stored is None or stored.device_id != command.device_id:
                raise InvalidCredentialsError("Invalid refresh token.")

            # Revocation is checked on the device row; token rows of a revoked
            # device are left untouched.
            device = port.get_device(device_id=stored.device_id)
            if device is None or device.user_id is None:
                raise InvalidCredentialsError("Invalid refresh token.")
            if device.is_revoked:
                raise DeviceRevokedError("Device has been revoked.")

            if stored.revoked_at is not None:
                logger.warning(
                    "refresh_device_token: reuse_detected device_id=%s token_id=%s",
                    device.id,
                    stored.id,
                )
                raise RefreshTokenReusedError("Refresh token has already been used.")
            if stored.expires_at <= now:
                raise TokenExpiredError("Refresh token expired.")

            user = self._credential_store.get_user_by_id(user_id=device.user_id)
            if user is None:
                raise InvalidCredentialsError("Invalid refresh token.")

            if not port.revoke_refresh_token(token_id=stored.id, revoked_at=now):
                logger.warning(
                    "refresh_device_token: concurrent_rotation device_id=%s token_id=%s",
                    device.id,
                    stored.id,
                )
                raise RefreshTokenReusedError("Refresh token has already been used.")

            return issue_cli_tokens(
                user=user,
                device_id=device.id,
                device_flow_port=port,
                token_port=self._token_port,
                now=now,
            )

        tokens = self._device_flow_port.execute_in_transaction(_tx)
        logger.info("refresh_device_token: rotated device_id=%s", tokens.device_id)
        return tokens
