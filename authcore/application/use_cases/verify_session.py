from __future__ import annotations

from dataclasses import dataclass

from authcore.application.dto.auth import TokenClaims, VerifySessionInput
from authcore.application.ports.credential_store_port import CredentialStorePort
from authcore.application.ports.device_flow_port import DeviceFlowPort
from authcore.application.ports.token_port import TokenPort
from authcore.domain.entities.user import User
from authcore.domain.exceptions import DeviceRevokedError, TokenMalformedError

from .auth_common import CLI_SCOPE


@dataclass(frozen=True)
class VerifiedSession:
    user: User
    claims: TokenClaims


class VerifySessionUseCase:
    """Resolve a bearer token to its user.

    CLI tokens are additionally bound to a device, which must still exist,
    belong to the token subject and not be revoked.
    """

    def __init__(
        self,
        *,
        credential_store: CredentialStorePort,
        device_flow_port: DeviceFlowPort,
        token_port: TokenPort,
    ):
        self._credential_store = credential_store
        self._device_flow_port = device_flow_port
        self._token_port = token_port

    def execute(self, command: VerifySessionInput) -> VerifiedSession:
        claims = self._token_port.verify(token=command.token)

        user = self._credential_store.get_user_by_id(user_id=claims.user_id)
        if user is None:
            raise TokenMalformedError("Token subject no longer exists.")

        if claims.scope == CLI_SCOPE:
            if not claims.device_id:
                raise TokenMalformedError("CLI token without device.")
            device = self._device_flow_port.get_device(device_id=claims.device_id)
            if device is None or device.user_id != user.id:
                raise TokenMalformedError("CLI token device mismatch.")
            if device.is_revoked:
                raise DeviceRevokedError("Device has been revoked.")

        return VerifiedSession(user=user, claims=claims)
