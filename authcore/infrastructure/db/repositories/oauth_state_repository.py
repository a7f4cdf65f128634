from __future__ import annotations

from datetime import datetime

from sqlalchemy import text

from authcore.application.ports.oauth_state_port import OAuthStatePort
from authcore.domain.entities.oauth_state import OAuthState
from authcore.infrastructure.db.mappers.accounts_mapper import map_row_to_oauth_state
from authcore.infrastructure.db.mappers.common import to_iso

from .base import SqlRepository


class SqlOAuthStateRepository(SqlRepository, OAuthStatePort):
    def create_state(
        self,
        *,
        state: str,
        provider: str,
        redirect_uri: str,
        cli_flow_state: str | None,
        created_at: datetime,
        expires_at: datetime,
    ) -> OAuthState:
        sql = """
            INSERT INTO oauth_states (
                state, provider, redirect_uri, cli_flow_state, created_at, expires_at
            ) VALUES (
                :state, :provider, :redirect_uri, :cli_flow_state, :created_at, :expires_at
            )
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {
                    "state": state,
                    "provider": provider,
                    "redirect_uri": redirect_uri,
                    "cli_flow_state": cli_flow_state,
                    "created_at": to_iso(created_at),
                    "expires_at": to_iso(expires_at),
                },
            )
        return OAuthState(
            state=state,
            provider=provider,
            redirect_uri=redirect_uri,
            cli_flow_state=cli_flow_state,
            created_at=created_at,
            expires_at=expires_at,
        )

    def consume_state(self, *, state: str) -> OAuthState | None:
        select_sql = """
            SELECT state, provider, redirect_uri, cli_flow_state, created_at, expires_at
            FROM oauth_states
            WHERE state = :state
            LIMIT 1
        """
        delete_sql = "DELETE FROM oauth_states WHERE state = :state"
        with self._write() as conn:
            row = conn.execute(text(select_sql), {"state": state}).mappings().first()
            if row is None:
                return None
            deleted = conn.execute(text(delete_sql), {"state": state}).rowcount
        # Only the caller whose DELETE removed the row owns the state.
        if deleted != 1:
            return None
        return map_row_to_oauth_state(row)

    def delete_expired_states(self, *, now: datetime) -> int:
        sql = "DELETE FROM oauth_states WHERE expires_at <= :now"
        with self._write() as conn:
            result = conn.execute(text(sql), {"now": to_iso(now)})
        return int(result.rowcount or 0)
