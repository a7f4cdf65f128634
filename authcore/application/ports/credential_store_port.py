from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol, TypeVar

from authcore.domain.entities.user import AuthProvider, Invite, User


TResult = TypeVar("TResult")


class CredentialStorePort(Protocol):
    def execute_in_transaction(self, fn: Callable[[CredentialStorePort], TResult]) -> TResult:
        ...

    def get_user_by_id(self, *, user_id: str) -> User | None:
        ...

    def get_user_by_email(self, *, email: str) -> User | None:
        ...

    def get_user_by_provider_identity(
        self,
        *,
        provider: AuthProvider,
        provider_user_id: str,
    ) -> User | None:
        ...

    def create_user(
        self,
        *,
        user_id: str,
        email: str,
        password_hash: str | None,
        provider: AuthProvider,
        provider_user_id: str | None,
        created_at: datetime,
        updated_at: datetime,
    ) -> User:
        ...

    def update_password_hash(self, *, user_id: str, password_hash: str, updated_at: datetime) -> None:
        ...

    def get_invite_by_email(self, *, email: str) -> Invite | None:
        ...

    def mark_invite_used(self, *, email: str, user_id: str, used_at: datetime) -> bool:
        ...
