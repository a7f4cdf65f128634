from __future__ import annotations

from urllib.parse import urlencode

from authcore.application.dto.oauth import OAuthIdentity
from authcore.application.ports.oauth_provider_port import OAuthProviderPort
from authcore.domain.exceptions import OAuthProviderError

from .oauth_http import OAuthHttpClient


AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
API_BASE = "https://api.github.com"


class GitHubOAuthClient(OAuthHttpClient, OAuthProviderPort):
    name = "github"

    def authorization_url(self, *, state: str, redirect_uri: str) -> str:
        query = {
            "client_id": self._client_id,
            "redirect_uri": redirect_uri,
            "scope": "read:user user:email",
            "state": state,
            "allow_signup": "true",
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
            },
            headers={"Accept": "application/json"},
        )
        # GitHub reports exchange errors with a 200 and an ``error`` field.
        if not isinstance(token_payload, dict) or token_payload.get("error"):
            raise OAuthProviderError("GitHub rejected the authorization code.")
        access_token = token_payload.get("access_token")
        if not access_token:
            raise OAuthProviderError("GitHub token response is missing access_token.")

        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }
        profile = self._request_json("GET", f"{API_BASE}/user", headers=headers)
        if not isinstance(profile, dict) or profile.get("id") is None:
            raise OAuthProviderError("GitHub profile is missing required claims.")

        emails = self._request_json("GET", f"{API_BASE}/user/emails", headers=headers)
        email, email_verified = _pick_email(emails if isinstance(emails, list) else [], profile.get("email"))
        if not email:
            raise OAuthProviderError("GitHub account has no usable email address.")

        name = profile.get("name") or profile.get("login")
        return OAuthIdentity(
            provider=self.name,
            provider_user_id=str(profile["id"]),
            email=str(email),
            email_verified=email_verified,
            name=name if isinstance(name, str) else None,
        )


def _pick_email(emails: list, public_email: str | None) -> tuple[str | None, bool]:
    verified = [item for item in emails if isinstance(item, dict) and item.get("verified") and item.get("email")]
    for item in verified:
        if item.get("primary"):
            return str(item["email"]), True
    if verified:
        return str(verified[0]["email"]), True
    return public_email, False
