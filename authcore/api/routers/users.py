from __future__ import annotations

from fastapi import APIRouter, Depends

from authcore.api.deps import get_current_user, get_get_me_use_case
from authcore.api.routers.auth import unified_response
from authcore.api.schemas.auth import UnifiedAuthResponse
from authcore.application.use_cases.get_me import GetMeUseCase
from authcore.domain.entities.user import User


router = APIRouter()


@router.get("/users/me", response_model=UnifiedAuthResponse)
def get_me(
    current_user: User = Depends(get_current_user),
    use_case: GetMeUseCase = Depends(get_get_me_use_case),
):
    return unified_response(use_case.execute(user=current_user))
