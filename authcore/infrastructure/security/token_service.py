from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

import jwt

from authcore.application.dto.auth import IssuedToken, TokenClaims
from authcore.application.ports.token_port import TokenPort
from authcore.domain.exceptions import (
    TokenExpiredError,
    TokenMalformedError,
    TokenSignatureInvalidError,
)


MIN_SECRET_LENGTH = 32
ALGORITHM = "HS256"
CLI_SCOPE = "cli"
SCOPES = {"web", CLI_SCOPE}


class JwtTokenService(TokenPort):
    def __init__(
        self,
        *,
        jwt_secret: str,
        web_ttl_minutes: int,
        cli_ttl_minutes: int,
        refresh_ttl_days: int,
    ):
        if len(jwt_secret or "") < MIN_SECRET_LENGTH:
            raise ValueError(f"JWT secret must have at least {MIN_SECRET_LENGTH} characters.")
        self._jwt_secret = jwt_secret
        self._web_ttl_minutes = web_ttl_minutes
        self._cli_ttl_minutes = cli_ttl_minutes
        self._refresh_ttl_days = refresh_ttl_days

    def issue(
        self,
        *,
        user_id: str,
        email: str | None,
        scope: str,
        now: datetime,
        device_id: str | None = None,
    ) -> IssuedToken:
        if scope not in SCOPES:
            raise ValueError(f"Unknown token scope: {scope}.")
        if scope == CLI_SCOPE and not device_id:
            raise ValueError("CLI tokens must carry a device id.")

        ttl = self._cli_ttl_minutes if scope == CLI_SCOPE else self._web_ttl_minutes
        exp = now + timedelta(minutes=ttl)
        payload = {
            "sub": user_id,
            "email": email,
            "scope": scope,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "jti": secrets.token_hex(8),
        }
        if device_id:
            payload["did"] = device_id
        token = jwt.encode(payload, self._jwt_secret, algorithm=ALGORITHM)
        return IssuedToken(token=token, expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc))

    def verify(self, *, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=[ALGORITHM],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError("Invalid or expired token.") from exc
        except jwt.InvalidSignatureError as exc:
            raise TokenSignatureInvalidError("Invalid or expired token.") from exc
        except jwt.PyJWTError as exc:
            raise TokenMalformedError("Invalid or expired token.") from exc

        user_id = payload.get("sub")
        scope = payload.get("scope")
        if not user_id or not isinstance(user_id, str) or scope not in SCOPES:
            raise TokenMalformedError("Invalid or expired token.")

        device_id = payload.get("did")
        if scope == CLI_SCOPE and not device_id:
            raise TokenMalformedError("Invalid or expired token.")

        return TokenClaims(
            user_id=user_id,
            email=payload.get("email"),
            scope=scope,
            device_id=device_id,
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )

    def generate_refresh_token(self) -> str:
        return secrets.token_urlsafe(48)

    def hash_refresh_token(self, *, refresh_token: str) -> str:
        return hashlib.sha256(refresh_token.encode("utf-8")).hexdigest()

    def refresh_token_expires_at(self, *, now: datetime) -> datetime:
        return now + timedelta(days=self._refresh_ttl_days)
