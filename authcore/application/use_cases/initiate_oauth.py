from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from typing import Mapping

from authcore.application.dto.oauth import InitiateOAuthInput, InitiateOAuthOutput
from authcore.application.ports.oauth_provider_port import OAuthProviderPort
from authcore.application.ports.oauth_state_port import OAuthStatePort
from authcore.domain.exceptions import UnsupportedOAuthProviderError

from .auth_common import utcnow


logger = logging.getLogger(__name__)


class InitiateOAuthUseCase:
    def __init__(
        self,
        *,
        oauth_state_port: OAuthStatePort,
        providers: Mapping[str, OAuthProviderPort],
        state_ttl_minutes: int,
    ):
        self._oauth_state_port = oauth_state_port
        self._providers = providers
        self._state_ttl_minutes = state_ttl_minutes

    def execute(self, command: InitiateOAuthInput) -> InitiateOAuthOutput:
        provider = self._providers.get(command.provider)
        if provider is None:
            raise UnsupportedOAuthProviderError(f"Unsupported OAuth provider: {command.provider}.")

        now = utcnow()
        removed = self._oauth_state_port.delete_expired_states(now=now)
        if removed:
            logger.info("initiate_oauth: expired_states_removed count=%s", removed)

        state = secrets.token_urlsafe(32)
        self._oauth_state_port.create_state(
            state=state,
            provider=command.provider,
            redirect_uri=command.redirect_uri,
            cli_flow_state=command.cli_flow_state,
            created_at=now,
            expires_at=now + timedelta(minutes=self._state_ttl_minutes),
        )
        logger.info(
            "initiate_oauth: state_created provider=%s cli_linked=%s",
            command.provider,
            command.cli_flow_state is not None,
        )
        return InitiateOAuthOutput(
            authorization_url=provider.authorization_url(state=state, redirect_uri=command.redirect_uri),
            state=state,
        )
