from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header, HTTPException

from authcore.application.dto.auth import VerifySessionInput
from authcore.application.ports.oauth_provider_port import OAuthProviderPort
from authcore.application.use_cases.approve_device_flow import ApproveDeviceFlowUseCase
from authcore.application.use_cases.auth_common import WEB_SCOPE
from authcore.application.use_cases.complete_oauth_callback import CompleteOAuthCallbackUseCase
from authcore.application.use_cases.create_checkout_session import CreateCheckoutSessionUseCase
from authcore.application.use_cases.get_me import GetMeUseCase
from authcore.application.use_cases.initiate_oauth import InitiateOAuthUseCase
from authcore.application.use_cases.list_devices import ListDevicesUseCase
from authcore.application.use_cases.login_local import LoginLocalUseCase
from authcore.application.use_cases.poll_device_flow import PollDeviceFlowUseCase
from authcore.application.use_cases.process_stripe_webhook import ProcessStripeWebhookUseCase
from authcore.application.use_cases.refresh_device_token import RefreshDeviceTokenUseCase
from authcore.application.use_cases.register_device import RegisterDeviceUseCase
from authcore.application.use_cases.register_user import RegisterUserUseCase
from authcore.application.use_cases.resolve_entitlement import ResolveEntitlementUseCase
from authcore.application.use_cases.revoke_device import RevokeDeviceUseCase
from authcore.application.use_cases.start_device_flow import StartDeviceFlowUseCase
from authcore.application.use_cases.verify_session import VerifiedSession, VerifySessionUseCase
from authcore.domain.entities.user import User
from authcore.domain.exceptions import DeviceRevokedError, TokenVerificationError
from authcore.infrastructure.clients.github_oauth_client import GitHubOAuthClient
from authcore.infrastructure.clients.google_oauth_client import GoogleOAuthClient
from authcore.infrastructure.clients.stripe_client import StripeClient
from authcore.infrastructure.db.engine import get_engine
from authcore.infrastructure.db.repositories.accounts_repository import SqlAccountsRepository
from authcore.infrastructure.db.repositories.billing_repository import SqlBillingRepository
from authcore.infrastructure.db.repositories.device_flow_repository import SqlDeviceFlowRepository
from authcore.infrastructure.db.repositories.oauth_state_repository import SqlOAuthStateRepository
from authcore.infrastructure.security.password_hasher import Argon2PasswordHasher
from authcore.infrastructure.security.token_service import JwtTokenService
from authcore.shared.config import get_settings


INVALID_TOKEN_MESSAGE = "Invalid or expired token."


def _get_db_engine():
    settings = get_settings()
    if not settings.database_url:
        raise HTTPException(status_code=500, detail="DATABASE_URL is required.")
    return get_engine(settings.database_url)


def _get_accounts_repository() -> SqlAccountsRepository:
    return SqlAccountsRepository(_get_db_engine())


def _get_oauth_state_repository() -> SqlOAuthStateRepository:
    return SqlOAuthStateRepository(_get_db_engine())


def _get_device_flow_repository() -> SqlDeviceFlowRepository:
    return SqlDeviceFlowRepository(_get_db_engine())


def _get_billing_repository() -> SqlBillingRepository:
    return SqlBillingRepository(_get_db_engine())


@lru_cache(maxsize=1)
def _get_password_hasher() -> Argon2PasswordHasher:
    return Argon2PasswordHasher()


@lru_cache(maxsize=1)
def _get_token_service() -> JwtTokenService:
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="JWT_SECRET is required.")
    try:
        return JwtTokenService(
            jwt_secret=settings.jwt_secret,
            web_ttl_minutes=settings.jwt_web_ttl_minutes,
            cli_ttl_minutes=settings.jwt_cli_ttl_minutes,
            refresh_ttl_days=settings.cli_refresh_ttl_days,
        )
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@lru_cache(maxsize=1)
def _get_oauth_providers() -> dict[str, OAuthProviderPort]:
    settings = get_settings()
    providers: dict[str, OAuthProviderPort] = {}
    if settings.google_client_id and settings.google_client_secret:
        providers["google"] = GoogleOAuthClient(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            timeout_seconds=settings.oauth_http_timeout_seconds,
        )
    if settings.github_client_id and settings.github_client_secret:
        providers["github"] = GitHubOAuthClient(
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            timeout_seconds=settings.oauth_http_timeout_seconds,
        )
    return providers


@lru_cache(maxsize=1)
def _get_stripe_client() -> StripeClient:
    settings = get_settings()
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="STRIPE_SECRET_KEY is required.")
    if not settings.stripe_webhook_secret:
        raise HTTPException(status_code=500, detail="STRIPE_WEBHOOK_SECRET is required.")
    return StripeClient(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        subscription_price_id=settings.stripe_price_id or None,
        one_time_price_id=settings.stripe_one_time_price_id or None,
    )


def get_resolve_entitlement_use_case() -> ResolveEntitlementUseCase:
    return ResolveEntitlementUseCase(
        credential_store=_get_accounts_repository(),
        entitlements_port=_get_billing_repository(),
    )


def get_register_user_use_case() -> RegisterUserUseCase:
    return RegisterUserUseCase(
        credential_store=_get_accounts_repository(),
        password_hasher=_get_password_hasher(),
        token_port=_get_token_service(),
        resolve_entitlement=get_resolve_entitlement_use_case(),
    )


def get_login_local_use_case() -> LoginLocalUseCase:
    return LoginLocalUseCase(
        credential_store=_get_accounts_repository(),
        password_hasher=_get_password_hasher(),
        token_port=_get_token_service(),
        resolve_entitlement=get_resolve_entitlement_use_case(),
    )


def get_verify_session_use_case() -> VerifySessionUseCase:
    return VerifySessionUseCase(
        credential_store=_get_accounts_repository(),
        device_flow_port=_get_device_flow_repository(),
        token_port=_get_token_service(),
    )


def get_get_me_use_case() -> GetMeUseCase:
    return GetMeUseCase(resolve_entitlement=get_resolve_entitlement_use_case())


def get_initiate_oauth_use_case() -> InitiateOAuthUseCase:
    settings = get_settings()
    return InitiateOAuthUseCase(
        oauth_state_port=_get_oauth_state_repository(),
        providers=_get_oauth_providers(),
        state_ttl_minutes=settings.oauth_state_ttl_minutes,
    )


def get_approve_device_flow_use_case() -> ApproveDeviceFlowUseCase:
    return ApproveDeviceFlowUseCase(device_flow_port=_get_device_flow_repository())


def get_complete_oauth_callback_use_case() -> CompleteOAuthCallbackUseCase:
    return CompleteOAuthCallbackUseCase(
        oauth_state_port=_get_oauth_state_repository(),
        providers=_get_oauth_providers(),
        credential_store=_get_accounts_repository(),
        token_port=_get_token_service(),
        resolve_entitlement=get_resolve_entitlement_use_case(),
        approve_device_flow=get_approve_device_flow_use_case(),
    )


def get_register_device_use_case() -> RegisterDeviceUseCase:
    return RegisterDeviceUseCase(device_flow_port=_get_device_flow_repository())


def get_list_devices_use_case() -> ListDevicesUseCase:
    return ListDevicesUseCase(device_flow_port=_get_device_flow_repository())


def get_start_device_flow_use_case() -> StartDeviceFlowUseCase:
    settings = get_settings()
    return StartDeviceFlowUseCase(
        device_flow_port=_get_device_flow_repository(),
        flow_ttl_minutes=settings.cli_flow_ttl_minutes,
        verification_url=settings.cli_verification_url,
    )


def get_poll_device_flow_use_case() -> PollDeviceFlowUseCase:
    return PollDeviceFlowUseCase(
        device_flow_port=_get_device_flow_repository(),
        credential_store=_get_accounts_repository(),
        token_port=_get_token_service(),
    )


def get_refresh_device_token_use_case() -> RefreshDeviceTokenUseCase:
    return RefreshDeviceTokenUseCase(
        device_flow_port=_get_device_flow_repository(),
        credential_store=_get_accounts_repository(),
        token_port=_get_token_service(),
    )


def get_revoke_device_use_case() -> RevokeDeviceUseCase:
    return RevokeDeviceUseCase(device_flow_port=_get_device_flow_repository())


def get_create_checkout_session_use_case() -> CreateCheckoutSessionUseCase:
    return CreateCheckoutSessionUseCase(
        credential_store=_get_accounts_repository(),
        billing_store=_get_billing_repository(),
        stripe_port=_get_stripe_client(),
    )


def get_process_stripe_webhook_use_case() -> ProcessStripeWebhookUseCase:
    settings = get_settings()
    return ProcessStripeWebhookUseCase(
        billing_store=_get_billing_repository(),
        stripe_port=_get_stripe_client(),
        one_time_access_days=settings.one_time_access_days,
    )


def _bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header.")
    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing access token.")
    return token


def _verify(token: str, use_case: VerifySessionUseCase) -> VerifiedSession:
    try:
        return use_case.execute(VerifySessionInput(token=token))
    except TokenVerificationError as exc:
        raise HTTPException(status_code=401, detail=INVALID_TOKEN_MESSAGE) from exc
    except DeviceRevokedError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


def get_current_session(
    authorization: str | None = Header(default=None),
    use_case: VerifySessionUseCase = Depends(get_verify_session_use_case),
) -> VerifiedSession:
    return _verify(_bearer_token(authorization), use_case)


def get_optional_session(
    authorization: str | None = Header(default=None),
    use_case: VerifySessionUseCase = Depends(get_verify_session_use_case),
) -> VerifiedSession | None:
    if not authorization:
        return None
    return _verify(_bearer_token(authorization), use_case)


def get_current_user(session: VerifiedSession = Depends(get_current_session)) -> User:
    return session.user


def get_web_user(session: VerifiedSession = Depends(get_current_session)) -> User:
    if session.claims.scope != WEB_SCOPE:
        raise HTTPException(status_code=403, detail="A web session is required.")
    return session.user


def require_paid_access(
    user: User = Depends(get_current_user),
    resolve_entitlement: ResolveEntitlementUseCase = Depends(get_resolve_entitlement_use_case),
) -> User:
    access = resolve_entitlement.execute(user=user)
    if access.payment_required:
        raise HTTPException(
            status_code=402,
            detail={"error": "Payment required.", "payment_required": True},
        )
    return user
