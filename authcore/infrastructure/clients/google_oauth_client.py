from __future__ import annotations

from urllib.parse import urlencode

from authcore.application.dto.oauth import OAuthIdentity
from authcore.application.ports.oauth_provider_port import OAuthProviderPort
from authcore.domain.exceptions import OAuthProviderError

from .oauth_http import OAuthHttpClient


AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class GoogleOAuthClient(OAuthHttpClient, OAuthProviderPort):
    name = "google"

    def authorization_url(self, *, state: str, redirect_uri: str) -> str:
        query = {
            "client_id": self._client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{AUTHORIZE_URL}?{urlencode(query)}"

    def exchange_code(self, *, code: str, redirect_uri: str) -> OAuthIdentity:
        token_payload = self._request_json(
            "POST",
            TOKEN_URL,
            data={
                "code": code,
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )
        access_token = token_payload.get("access_token") if isinstance(token_payload, dict) else None
        if not access_token:
            raise OAuthProviderError("Google token response is missing access_token.")

        profile = self._request_json(
            "GET",
            USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if not isinstance(profile, dict):
            raise OAuthProviderError("Google userinfo response is malformed.")

        subject = profile.get("sub")
        email = profile.get("email")
        if not subject or not email:
            raise OAuthProviderError("Google profile is missing required claims.")

        email_verified_raw = profile.get("email_verified", False)
        email_verified = bool(email_verified_raw)
        if isinstance(email_verified_raw, str):
            email_verified = email_verified_raw.lower() == "true"

        name = profile.get("name") if isinstance(profile.get("name"), str) else None
        return OAuthIdentity(
            provider=self.name,
            provider_user_id=str(subject),
            email=str(email),
            email_verified=email_verified,
            name=name,
        )
