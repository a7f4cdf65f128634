from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RegisterDeviceRequest(BaseModel):
    device_fingerprint: str = Field(..., min_length=1, max_length=255)
    device_name: str = Field(..., min_length=1, max_length=120)


class DeviceResponse(BaseModel):
    id: str
    device_name: str
    device_fingerprint: str
    paired: bool
    last_used_at: datetime | None
    created_at: datetime
    revoked_at: datetime | None


class DeviceListResponse(BaseModel):
    devices: list[DeviceResponse]


class StartDeviceFlowRequest(BaseModel):
    device_id: str = Field(..., min_length=1)
    code_challenge: str = Field(..., min_length=1, max_length=256)
    code_challenge_method: str = "S256"


class StartDeviceFlowResponse(BaseModel):
    flow_id: str
    state: str
    verification_url: str
    expires_at: datetime


class CompleteDeviceFlowRequest(BaseModel):
    state: str = Field(..., min_length=1)


class CompleteDeviceFlowResponse(BaseModel):
    flow_id: str
    device_id: str
    status: str


class CLITokensResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime
    device_id: str
    user_id: str


class PollDeviceFlowResponse(BaseModel):
    status: str
    tokens: CLITokensResponse | None = None


class RefreshDeviceTokenRequest(BaseModel):
    device_id: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
