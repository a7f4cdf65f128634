from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


PollStatus = Literal["pending", "completed", "expired"]


@dataclass(frozen=True)
class RegisterDeviceInput:
    device_fingerprint: str
    device_name: str
    user_id: str | None


@dataclass(frozen=True)
class StartDeviceFlowInput:
    device_id: str
    code_challenge: str
    code_challenge_method: str = "S256"


@dataclass(frozen=True)
class StartDeviceFlowOutput:
    flow_id: str
    state: str
    verification_url: str
    expires_at: datetime


@dataclass(frozen=True)
class ApproveDeviceFlowInput:
    state: str
    user_id: str


@dataclass(frozen=True)
class PollDeviceFlowInput:
    flow_id: str
    code_verifier: str


@dataclass(frozen=True)
class CLITokensOutput:
    access_token: str
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime
    device_id: str
    user_id: str


@dataclass(frozen=True)
class PollDeviceFlowOutput:
    status: PollStatus
    tokens: CLITokensOutput | None = None


@dataclass(frozen=True)
class RefreshDeviceTokenInput:
    device_id: str
    refresh_token: str


@dataclass(frozen=True)
class RevokeDeviceInput:
    device_id: str
    user_id: str
