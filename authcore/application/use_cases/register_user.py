from __future__ import annotations

import logging
from uuid import uuid4

from authcore.application.dto.auth import RegisterUserInput, UnifiedAuthOutput
from authcore.application.ports.credential_store_port import CredentialStorePort
from authcore.application.ports.password_hasher_port import PasswordHasherPort
from authcore.application.ports.token_port import TokenPort
from authcore.domain.entities.user import User
from authcore.domain.exceptions import EmailAlreadyExistsError

from .auth_common import (
    MIN_PASSWORD_LENGTH,
    WEB_SCOPE,
    build_unified_output,
    is_valid_email,
    normalize_email,
    utcnow,
)
from .resolve_entitlement import ResolveEntitlementUseCase


logger = logging.getLogger(__name__)


class RegisterUserUseCase:
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

    def execute(self, command: RegisterUserInput) -> UnifiedAuthOutput:
        email = normalize_email(command.email)
        password = command.password

        if not is_valid_email(email):
            raise ValueError("A valid email is required.")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"password must have at least {MIN_PASSWORD_LENGTH} characters.")

        password_hash = self._password_hasher.hash(password)

        def _tx(store: CredentialStorePort) -> User:
            if store.get_user_by_email(email=email) is not None:
                raise EmailAlreadyExistsError("Email already in use.")

            now = utcnow()
            user = store.create_user(
                user_id=str(uuid4()),
                email=email,
                password_hash=password_hash,
                provider="local",
                provider_user_id=None,
                created_at=now,
                updated_at=now,
            )
            if store.mark_invite_used(email=email, user_id=user.id, used_at=now):
                logger.info("register_user: invite_consumed user_id=%s", user.id)
            return user

        user = self._credential_store.execute_in_transaction(_tx)
        logger.info("register_user: created user_id=%s", user.id)

        issued = self._token_port.issue(user_id=user.id, email=user.email, scope=WEB_SCOPE, now=utcnow())
        return build_unified_output(
            user=user,
            auth_token=issued.token,
            payment_access=self._resolve_entitlement.execute(user=user),
        )
