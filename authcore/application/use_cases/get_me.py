from __future__ import annotations

from authcore.application.dto.auth import UnifiedAuthOutput
from authcore.domain.entities.user import User

from .auth_common import build_unified_output
from .resolve_entitlement import ResolveEntitlementUseCase


class GetMeUseCase:
    def __init__(self, *, resolve_entitlement: ResolveEntitlementUseCase):
        self._resolve_entitlement = resolve_entitlement

    def execute(self, *, user: User) -> UnifiedAuthOutput:
        return build_unified_output(
            user=user,
            auth_token=None,
            payment_access=self._resolve_entitlement.execute(user=user),
        )
