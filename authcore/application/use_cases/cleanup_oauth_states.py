from __future__ import annotations

import logging

from authcore.application.ports.oauth_state_port import OAuthStatePort

from .auth_common import utcnow


logger = logging.getLogger(__name__)


class CleanupExpiredOAuthStatesUseCase:
    def __init__(self, *, oauth_state_port: OAuthStatePort):
        self._oauth_state_port = oauth_state_port

    def execute(self) -> int:
        removed = self._oauth_state_port.delete_expired_states(now=utcnow())
        logger.info("cleanup_oauth_states: removed count=%s", removed)
        return removed
