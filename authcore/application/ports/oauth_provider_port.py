from __future__ import annotations

from typing import Protocol

from authcore.application.dto.oauth import OAuthIdentity


class OAuthProviderPort(Protocol):
    name: str

    def authorization_url(self, *, state: str, redirect_uri: str) -> str:
        ...

    def exchange_code(self, *, code: str, redirect_uri: str) -> OAuthIdentity:
        ...
