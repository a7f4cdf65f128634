from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from authcore.api.deps import (
    get_approve_device_flow_use_case,
    get_current_user,
    get_list_devices_use_case,
    get_optional_session,
    get_poll_device_flow_use_case,
    get_refresh_device_token_use_case,
    get_register_device_use_case,
    get_revoke_device_use_case,
    get_start_device_flow_use_case,
    get_web_user,
)
from authcore.api.schemas.cli import (
    CLITokensResponse,
    CompleteDeviceFlowRequest,
    CompleteDeviceFlowResponse,
    DeviceListResponse,
    DeviceResponse,
    PollDeviceFlowResponse,
    RefreshDeviceTokenRequest,
    RegisterDeviceRequest,
    StartDeviceFlowRequest,
    StartDeviceFlowResponse,
)
from authcore.application.dto.cli import (
    ApproveDeviceFlowInput,
    CLITokensOutput,
    PollDeviceFlowInput,
    RefreshDeviceTokenInput,
    RegisterDeviceInput,
    RevokeDeviceInput,
    StartDeviceFlowInput,
)
from authcore.application.use_cases.approve_device_flow import ApproveDeviceFlowUseCase
from authcore.application.use_cases.list_devices import ListDevicesUseCase
from authcore.application.use_cases.poll_device_flow import PollDeviceFlowUseCase
from authcore.application.use_cases.refresh_device_token import RefreshDeviceTokenUseCase
from authcore.application.use_cases.register_device import RegisterDeviceUseCase
from authcore.application.use_cases.revoke_device import RevokeDeviceUseCase
from authcore.application.use_cases.start_device_flow import StartDeviceFlowUseCase
from authcore.application.use_cases.verify_session import VerifiedSession
from authcore.domain.entities.device import CLIDevice
from authcore.domain.entities.user import User
from authcore.domain.exceptions import (
    DeviceNotFoundError,
    DeviceOwnershipError,
    DeviceRevokedError,
    FlowExpiredError,
    InvalidCredentialsError,
    PKCEMismatchError,
    RefreshTokenReusedError,
    TokenExpiredError,
)


router = APIRouter()


def _device_response(device: CLIDevice) -> DeviceResponse:
    return DeviceResponse(
        id=device.id,
        device_name=device.device_name,
        device_fingerprint=device.device_fingerprint,
        paired=not device.is_provisional,
        last_used_at=device.last_used_at,
        created_at=device.created_at,
        revoked_at=device.revoked_at,
    )


def _tokens_response(tokens: CLITokensOutput) -> CLITokensResponse:
    return CLITokensResponse(
        access_token=tokens.access_token,
        access_expires_at=tokens.access_expires_at,
        refresh_token=tokens.refresh_token,
        refresh_expires_at=tokens.refresh_expires_at,
        device_id=tokens.device_id,
        user_id=tokens.user_id,
    )


@router.post("/cli/devices", response_model=DeviceResponse)
def register_device(
    req: RegisterDeviceRequest,
    session: VerifiedSession | None = Depends(get_optional_session),
    use_case: RegisterDeviceUseCase = Depends(get_register_device_use_case),
):
    try:
        device = use_case.execute(
            RegisterDeviceInput(
                device_fingerprint=req.device_fingerprint,
                device_name=req.device_name,
                user_id=session.user.id if session else None,
            )
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return _device_response(device)


@router.get("/cli/devices", response_model=DeviceListResponse)
def list_devices(
    current_user: User = Depends(get_current_user),
    use_case: ListDevicesUseCase = Depends(get_list_devices_use_case),
):
    return DeviceListResponse(devices=[_device_response(device) for device in use_case.execute(user_id=current_user.id)])


@router.post("/cli/devices/{device_id}/revoke", response_model=DeviceResponse)
def revoke_device(
    device_id: str,
    current_user: User = Depends(get_current_user),
    use_case: RevokeDeviceUseCase = Depends(get_revoke_device_use_case),
):
    try:
        device = use_case.execute(RevokeDeviceInput(device_id=device_id, user_id=current_user.id))
    except DeviceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DeviceOwnershipError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc

    return _device_response(device)


@router.post("/cli/auth/start", response_model=StartDeviceFlowResponse)
def start_device_flow(
    req: StartDeviceFlowRequest,
    use_case: StartDeviceFlowUseCase = Depends(get_start_device_flow_use_case),
):
    try:
        output = use_case.execute(
            StartDeviceFlowInput(
                device_id=req.device_id,
                code_challenge=req.code_challenge,
                code_challenge_method=req.code_challenge_method,
            )
        )
    except DeviceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DeviceRevokedError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return StartDeviceFlowResponse(
        flow_id=output.flow_id,
        state=output.state,
        verification_url=output.verification_url,
        expires_at=output.expires_at,
    )


@router.post("/cli/auth/complete", response_model=CompleteDeviceFlowResponse)
def complete_device_flow(
    req: CompleteDeviceFlowRequest,
    current_user: User = Depends(get_web_user),
    use_case: ApproveDeviceFlowUseCase = Depends(get_approve_device_flow_use_case),
):
    try:
        flow = use_case.execute(ApproveDeviceFlowInput(state=req.state, user_id=current_user.id))
    except FlowExpiredError as exc:
        raise HTTPException(status_code=410, detail=str(exc)) from exc
    except DeviceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DeviceRevokedError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except DeviceOwnershipError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc

    return CompleteDeviceFlowResponse(flow_id=flow.id, device_id=flow.device_id, status=flow.status)


@router.get("/cli/auth/poll", response_model=PollDeviceFlowResponse)
def poll_device_flow(
    flow_id: str,
    code_verifier: str,
    use_case: PollDeviceFlowUseCase = Depends(get_poll_device_flow_use_case),
):
    try:
        output = use_case.execute(PollDeviceFlowInput(flow_id=flow_id, code_verifier=code_verifier))
    except FlowExpiredError as exc:
        raise HTTPException(status_code=410, detail=str(exc)) from exc
    except PKCEMismatchError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except DeviceRevokedError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except DeviceNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return PollDeviceFlowResponse(
        status=output.status,
        tokens=_tokens_response(output.tokens) if output.tokens else None,
    )


@router.post("/cli/auth/refresh", response_model=CLITokensResponse)
def refresh_device_token(
    req: RefreshDeviceTokenRequest,
    use_case: RefreshDeviceTokenUseCase = Depends(get_refresh_device_token_use_case),
):
    try:
        tokens = use_case.execute(RefreshDeviceTokenInput(device_id=req.device_id, refresh_token=req.refresh_token))
    except (InvalidCredentialsError, TokenExpiredError, DeviceRevokedError) as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except RefreshTokenReusedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return _tokens_response(tokens)
