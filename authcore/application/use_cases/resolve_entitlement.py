from __future__ import annotations

from datetime import datetime

from authcore.application.ports.credential_store_port import CredentialStorePort
from authcore.application.ports.entitlements_port import EntitlementsPort
from authcore.domain.entities.payment import PaymentAccess
from authcore.domain.entities.user import User
from authcore.domain.services.entitlements import resolve_payment_access

from .auth_common import utcnow


class ResolveEntitlementUseCase:
    def __init__(
        self,
        *,
        credential_store: CredentialStorePort,
        entitlements_port: EntitlementsPort,
    ):
        self._credential_store = credential_store
        self._entitlements_port = entitlements_port

    def execute(self, *, user: User, now: datetime | None = None) -> PaymentAccess:
        invite = self._credential_store.get_invite_by_email(email=user.email)
        payment = self._entitlements_port.get_payment_for_user(user_id=user.id)
        return resolve_payment_access(
            user_id=user.id,
            invite=invite,
            payment=payment,
            now=now or utcnow(),
        )
