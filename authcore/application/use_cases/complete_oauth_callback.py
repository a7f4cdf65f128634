from __future__ import annotations

import logging
from typing import Mapping
from uuid import uuid4

from authcore.application.dto.cli import ApproveDeviceFlowInput
from authcore.application.dto.oauth import OAuthCallbackInput, OAuthCallbackOutput, OAuthIdentity
from authcore.application.ports.credential_store_port import CredentialStorePort
from authcore.application.ports.oauth_provider_port import OAuthProviderPort
from authcore.application.ports.oauth_state_port import OAuthStatePort
from authcore.application.ports.token_port import TokenPort
from authcore.domain.entities.user import User
from authcore.domain.exceptions import (
    DeviceOwnershipError,
    DeviceRevokedError,
    FlowExpiredError,
    InvalidOrExpiredOAuthStateError,
    OAuthProviderError,
    UnsupportedOAuthProviderError,
)

from .approve_device_flow import ApproveDeviceFlowUseCase
from .auth_common import WEB_SCOPE, build_unified_output, normalize_email, utcnow
from .resolve_entitlement import ResolveEntitlementUseCase


logger = logging.getLogger(__name__)


class CompleteOAuthCallbackUseCase:
    def __init__(
        self,
        *,
        oauth_state_port: OAuthStatePort,
        providers: Mapping[str, OAuthProviderPort],
        credential_store: CredentialStorePort,
        token_port: TokenPort,
        resolve_entitlement: ResolveEntitlementUseCase,
        approve_device_flow: ApproveDeviceFlowUseCase,
    ):
        self._oauth_state_port = oauth_state_port
        self._providers = providers
        self._credential_store = credential_store
        self._token_port = token_port
        self._resolve_entitlement = resolve_entitlement
        self._approve_device_flow = approve_device_flow

    def execute(self, command: OAuthCallbackInput) -> OAuthCallbackOutput:
        # The state is consumed before the code is looked at, so a replayed
        # or forged callback never reaches the provider.
        oauth_state = self._oauth_state_port.consume_state(state=command.state) if command.state else None
        now = utcnow()
        if oauth_state is None:
            logger.warning("oauth_callback: unknown_state provider=%s", command.provider)
            raise InvalidOrExpiredOAuthStateError("Invalid or expired OAuth state.")
        if oauth_state.provider != command.provider or oauth_state.is_expired(now):
            logger.warning(
                "oauth_callback: rejected_state provider=%s state_provider=%s expired=%s",
                command.provider,
                oauth_state.provider,
                oauth_state.is_expired(now),
            )
            raise InvalidOrExpiredOAuthStateError("Invalid or expired OAuth state.")

        provider = self._providers.get(command.provider)
        if provider is None:
            raise UnsupportedOAuthProviderError(f"Unsupported OAuth provider: {command.provider}.")

        identity = provider.exchange_code(code=command.code, redirect_uri=oauth_state.redirect_uri)
        if not identity.email_verified:
            raise OAuthProviderError("Provider email is not verified.", code="email_not_verified")

        user, is_new_user = self._upsert_user(identity)

        cli_flow_completed = False
        if oauth_state.cli_flow_state:
            cli_flow_completed = self._complete_cli_flow(state=oauth_state.cli_flow_state, user=user)

        issued = self._token_port.issue(user_id=user.id, email=user.email, scope=WEB_SCOPE, now=utcnow())
        result = build_unified_output(
            user=user,
            auth_token=issued.token,
            payment_access=self._resolve_entitlement.execute(user=user),
        )
        logger.info(
            "oauth_callback: login provider=%s user_id=%s new_user=%s payment_required=%s",
            command.provider,
            user.id,
            is_new_user,
            result.payment_user.payment_required,
        )
        return OAuthCallbackOutput(
            result=result,
            is_new_user=is_new_user,
            cli_flow_completed=cli_flow_completed,
        )

    def _upsert_user(self, identity: OAuthIdentity) -> tuple[User, bool]:
        email = normalize_email(identity.email)

        def _tx(store: CredentialStorePort) -> tuple[User, bool]:
            user = store.get_user_by_provider_identity(
                provider=identity.provider,
                provider_user_id=identity.provider_user_id,
            )
            if user is not None:
                return user, False

            # A verified email that matches an existing account signs into it as is.
            user = store.get_user_by_email(email=email)
            if user is not None:
                return user, False

            now = utcnow()
            user = store.create_user(
                user_id=str(uuid4()),
                email=email,
                password_hash=None,
                provider=identity.provider,
                provider_user_id=identity.provider_user_id,
                created_at=now,
                updated_at=now,
            )
            if store.mark_invite_used(email=email, user_id=user.id, used_at=now):
                logger.info("oauth_callback: invite_consumed user_id=%s", user.id)
            return user, True

        return self._credential_store.execute_in_transaction(_tx)

    def _complete_cli_flow(self, *, state: str, user: User) -> bool:
        # A stale or foreign CLI flow must not block the browser login itself.
        try:
            self._approve_device_flow.execute(ApproveDeviceFlowInput(state=state, user_id=user.id))
        except (FlowExpiredError, DeviceRevokedError, DeviceOwnershipError) as exc:
            logger.warning("oauth_callback: cli_flow_not_completed user_id=%s reason=%s", user.id, exc)
            return False
        return True
