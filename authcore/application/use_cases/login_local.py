from __future__ import annotations

import logging

from authcore.application.dto.auth import LoginLocalInput, UnifiedAuthOutput
from authcore.application.ports.credential_store_port import CredentialStorePort
from authcore.application.ports.password_hasher_port import PasswordHasherPort
from authcore.application.ports.token_port import TokenPort
from authcore.domain.exceptions import InvalidCredentialsError

from .auth_common import WEB_SCOPE, build_unified_output, normalize_email, utcnow
from .resolve_entitlement import ResolveEntitlementUseCase


logger = logging.getLogger(__name__)


class LoginLocalUseCase:
    def __init__(
        self,
        *,
        credential_store: CredentialStorePort,
        password_hasher: PasswordHasherPort,
        token_port: TokenPort,
        resolve_entitlement: ResolveEntitlementUseCase,
    ):
        self._credential_store = credential_store
        self._password_hasher = password_hasher
        self._token_port = token_port
        self._resolve_entitlement = resolve_entitlement

    def execute(self, command: LoginLocalInput) -> UnifiedAuthOutput:
        email = normalize_email(command.email)
        user = self._credential_store.get_user_by_email(email=email)
        if user is None or not user.password_hash:
            raise InvalidCredentialsError("Invalid credentials.")

        if not self._password_hasher.verify(command.password, user.password_hash):
            logger.info("login_local: password_mismatch user_id=%s", user.id)
            raise InvalidCredentialsError("Invalid credentials.")

        if self._password_hasher.needs_rehash(user.password_hash):
            self._credential_store.update_password_hash(
                user_id=user.id,
                password_hash=self._password_hasher.hash(command.password),
                updated_at=utcnow(),
            )
            logger.info("login_local: password_rehashed user_id=%s", user.id)

        issued = self._token_port.issue(user_id=user.id, email=user.email, scope=WEB_SCOPE, now=utcnow())
        return build_unified_output(
            user=user,
            auth_token=issued.token,
            payment_access=self._resolve_entitlement.execute(user=user),
        )
