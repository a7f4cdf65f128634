from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from authcore.api.deps import get_current_session, get_login_local_use_case, get_register_user_use_case
from authcore.api.schemas.auth import (
    AuthUserResponse,
    LoginRequest,
    PaymentUserResponse,
    RegisterRequest,
    UnifiedAuthResponse,
    VerifyResponse,
)
from authcore.application.dto.auth import LoginLocalInput, RegisterUserInput, UnifiedAuthOutput
from authcore.application.use_cases.login_local import LoginLocalUseCase
from authcore.application.use_cases.register_user import RegisterUserUseCase
from authcore.application.use_cases.verify_session import VerifiedSession
from authcore.domain.exceptions import EmailAlreadyExistsError, InvalidCredentialsError


router = APIRouter()


def unified_response(output: UnifiedAuthOutput) -> UnifiedAuthResponse:
    return UnifiedAuthResponse(
        auth_token=output.auth_token,
        auth_user=AuthUserResponse(
            id=output.auth_user.id,
            email=output.auth_user.email,
            provider=output.auth_user.provider,
            created_at=output.auth_user.created_at,
            updated_at=output.auth_user.updated_at,
        ),
        payment_user=PaymentUserResponse(
            payment_required=output.payment_user.payment_required,
            payment_status=output.payment_user.payment_status,
            subscription_end_date=output.payment_user.subscription_end_date,
            has_valid_invite=output.payment_user.has_valid_invite,
            invite_expires_at=output.payment_user.invite_expires_at,
        ),
    )


@router.post("/auth/register", response_model=UnifiedAuthResponse, status_code=201)
def register_user(
    req: RegisterRequest,
    use_case: RegisterUserUseCase = Depends(get_register_user_use_case),
):
    try:
        output = use_case.execute(RegisterUserInput(email=req.email, password=req.password))
    except EmailAlreadyExistsError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return unified_response(output)


@router.post("/auth/login", response_model=UnifiedAuthResponse)
def login_local(
    req: LoginRequest,
    use_case: LoginLocalUseCase = Depends(get_login_local_use_case),
):
    try:
        output = use_case.execute(LoginLocalInput(email=req.email, password=req.password))
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    return unified_response(output)


@router.get("/auth/verify", response_model=VerifyResponse)
def verify_session(session: VerifiedSession = Depends(get_current_session)):
    return VerifyResponse(
        valid=True,
        user_id=session.claims.user_id,
        email=session.claims.email,
        scope=session.claims.scope,
        expires_at=session.claims.expires_at,
    )
