from __future__ import annotations

from dataclasses import dataclass

from authcore.application.dto.auth import UnifiedAuthOutput


@dataclass(frozen=True)
class InitiateOAuthInput:
    provider: str
    redirect_uri: str
    cli_flow_state: str | None = None


@dataclass(frozen=True)
class InitiateOAuthOutput:
    authorization_url: str
    state: str


@dataclass(frozen=True)
class OAuthCallbackInput:
    provider: str
    code: str
    state: str


@dataclass(frozen=True)
class OAuthCallbackOutput:
    result: UnifiedAuthOutput
    is_new_user: bool
    cli_flow_completed: bool


@dataclass(frozen=True)
class OAuthIdentity:
    provider: str
    provider_user_id: str
    email: str
    email_verified: bool
    name: str | None
