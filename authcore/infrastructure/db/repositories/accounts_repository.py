from __future__ import annotations

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from authcore.application.ports.credential_store_port import CredentialStorePort
from authcore.domain.entities.user import Invite, User
from authcore.domain.exceptions import EmailAlreadyExistsError
from authcore.infrastructure.db.mappers.accounts_mapper import map_row_to_invite, map_row_to_user
from authcore.infrastructure.db.mappers.common import to_iso

from .base import SqlRepository


USER_COLUMNS = "id, email, password_hash, provider, provider_user_id, created_at, updated_at"
INVITE_COLUMNS = (
    "id, email, invited_by, invited_at, used_at, used_by_user_id, expires_at, created_at, updated_at"
)


class SqlAccountsRepository(SqlRepository, CredentialStorePort):
    def get_user_by_id(self, *, user_id: str) -> User | None:
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM users
            WHERE id = :user_id
            LIMIT 1
        """
        with self._read() as conn:
            row = conn.execute(text(sql), {"user_id": user_id}).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def get_user_by_email(self, *, email: str) -> User | None:
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM users
            WHERE email = :email
            LIMIT 1
        """
        with self._read() as conn:
            row = conn.execute(text(sql), {"email": email.strip().lower()}).mappings().first()
        if row is None:
            return None
        return map_row_to_user(row)

    def get_user_by_provider_identity(self, *, provider: str, provider_user_id: str) -> User | None:
        sql = f"""
            SELECT {USER_COLUMNS}
            FROM users
            WHERE provider = :provider
              AND provider_user_id = :provider_user_id
            LIMIT 1
        """
        with self._read() as conn:
            row = (
                conn.execute(text(sql), {"provider": provider, "provider_user_id": provider_user_id})
                .mappings()
                .first()
            )
        if row is None:
            return None
        return map_row_to_user(row)

    def create_user(
        self,
        *,
        user_id: str,
        email: str,
        password_hash: str | None,
        provider: str,
        provider_user_id: str | None,
        created_at: datetime,
        updated_at: datetime,
    ) -> User:
        sql = """
            INSERT INTO users (
                id, email, password_hash, provider, provider_user_id, created_at, updated_at
            ) VALUES (
                :id, :email, :password_hash, :provider, :provider_user_id, :created_at, :updated_at
            )
        """
        params = {
            "id": user_id,
            "email": email.strip().lower(),
            "password_hash": password_hash,
            "provider": provider,
            "provider_user_id": provider_user_id,
            "created_at": to_iso(created_at),
            "updated_at": to_iso(updated_at),
        }
        try:
            with self._write() as conn:
                conn.execute(text(sql), params)
        except IntegrityError as exc:
            raise EmailAlreadyExistsError("Email already registered.") from exc

        user = self.get_user_by_id(user_id=user_id)
        if user is None:
            raise RuntimeError("Failed to create user.")
        return user

    def update_password_hash(self, *, user_id: str, password_hash: str, updated_at: datetime) -> None:
        sql = """
            UPDATE users
            SET password_hash = :password_hash,
                updated_at = :updated_at
            WHERE id = :user_id
        """
        with self._write() as conn:
            conn.execute(
                text(sql),
                {"user_id": user_id, "password_hash": password_hash, "updated_at": to_iso(updated_at)},
            )

    def get_invite_by_email(self, *, email: str) -> Invite | None:
        sql = f"""
            SELECT {INVITE_COLUMNS}
            FROM user_invites
            WHERE email = :email
            LIMIT 1
        """
        with self._read() as conn:
            row = conn.execute(text(sql), {"email": email.strip().lower()}).mappings().first()
        if row is None:
            return None
        return map_row_to_invite(row)

    def mark_invite_used(self, *, email: str, user_id: str, used_at: datetime) -> bool:
        sql = """
            UPDATE user_invites
            SET used_at = :used_at,
                used_by_user_id = :user_id,
                updated_at = :used_at
            WHERE email = :email
              AND used_at IS NULL
        """
        with self._write() as conn:
            result = conn.execute(
                text(sql),
                {"email": email.strip().lower(), "user_id": user_id, "used_at": to_iso(used_at)},
            )
        return result.rowcount == 1
