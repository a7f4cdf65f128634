from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from authcore.api.deps import get_complete_oauth_callback_use_case, get_initiate_oauth_use_case
from authcore.application.dto.oauth import InitiateOAuthInput, OAuthCallbackInput
from authcore.application.use_cases.complete_oauth_callback import CompleteOAuthCallbackUseCase
from authcore.application.use_cases.initiate_oauth import InitiateOAuthUseCase
from authcore.domain.exceptions import (
    EmailAlreadyExistsError,
    InvalidOrExpiredOAuthStateError,
    OAuthProviderError,
    UnsupportedOAuthProviderError,
)
from authcore.shared.config import get_settings


logger = logging.getLogger(__name__)

router = APIRouter()


def _client_callback_url(params: dict) -> str:
    settings = get_settings()
    return f"{settings.client_url}/auth/oauth/callback?{urlencode(params)}"


def _error_redirect(code: str) -> RedirectResponse:
    return RedirectResponse(_client_callback_url({"error": code}), status_code=302)


@router.get("/auth/oauth/{provider}")
def initiate_oauth(
    provider: str,
    state: str | None = None,
    use_case: InitiateOAuthUseCase = Depends(get_initiate_oauth_use_case),
):
    settings = get_settings()
    try:
        output = use_case.execute(
            InitiateOAuthInput(
                provider=provider,
                redirect_uri=f"{settings.server_url}/auth/oauth/{provider}/callback",
                cli_flow_state=state or None,
            )
        )
    except UnsupportedOAuthProviderError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return RedirectResponse(output.authorization_url, status_code=302)


@router.get("/auth/oauth/{provider}/callback")
def oauth_callback(
    provider: str,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    use_case: CompleteOAuthCallbackUseCase = Depends(get_complete_oauth_callback_use_case),
):
    if error:
        logger.info("oauth_callback: provider_error provider=%s error=%s", provider, error)
        return _error_redirect("oauth_denied")
    if not state:
        raise HTTPException(status_code=401, detail="Invalid or expired OAuth state.")
    if not code:
        return _error_redirect("oauth_exchange_failed")

    try:
        output = use_case.execute(OAuthCallbackInput(provider=provider, code=code, state=state))
    except InvalidOrExpiredOAuthStateError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except UnsupportedOAuthProviderError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except OAuthProviderError as exc:
        return _error_redirect(exc.code)
    except EmailAlreadyExistsError:
        return _error_redirect("user_creation_failed")

    result = output.result
    return RedirectResponse(
        _client_callback_url(
            {
                "token": result.auth_token or "",
                "user_id": result.auth_user.id,
                "email": result.auth_user.email,
                "is_new_user": str(output.is_new_user).lower(),
                "payment_required": str(result.payment_user.payment_required).lower(),
                "has_valid_invite": str(result.payment_user.has_valid_invite).lower(),
            }
        ),
        status_code=302,
    )
