from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from authcore.domain.exceptions import TokenExpiredError, TokenMalformedError, TokenSignatureInvalidError
from authcore.infrastructure.security.token_service import JwtTokenService
from port_fakes import TEST_JWT_SECRET, make_token_service, utcnow


def test_rejects_short_secret():
    with pytest.raises(ValueError):
        JwtTokenService(jwt_secret="too-short", web_ttl_minutes=60, cli_ttl_minutes=15, refresh_ttl_days=30)


def test_web_token_round_trip_carries_subject_and_scope():
    service = make_token_service()
    now = utcnow()

    issued = service.issue(user_id="user-1", email="alice@example.com", scope="web", now=now)
    claims = service.verify(token=issued.token)

    assert claims.user_id == "user-1"
    assert claims.email == "alice@example.com"
    assert claims.scope == "web"
    assert claims.device_id is None
    assert claims.expires_at == issued.expires_at
    assert timedelta(minutes=59) < issued.expires_at - now <= timedelta(minutes=60)


def test_cli_token_uses_short_ttl_and_device_claim():
    service = make_token_service(cli_ttl_minutes=15)
    now = utcnow()

    issued = service.issue(user_id="user-1", email=None, scope="cli", now=now, device_id="device-1")
    claims = service.verify(token=issued.token)

    assert claims.scope == "cli"
    assert claims.device_id == "device-1"
    assert issued.expires_at - now <= timedelta(minutes=15)


def test_cli_token_requires_device():
    with pytest.raises(ValueError):
        make_token_service().issue(user_id="user-1", email=None, scope="cli", now=utcnow())


def test_tokens_issued_in_the_same_second_differ():
    service = make_token_service()
    now = utcnow()
    first = service.issue(user_id="user-1", email=None, scope="web", now=now)
    second = service.issue(user_id="user-1", email=None, scope="web", now=now)
    assert first.token != second.token


def test_expired_token():
    service = make_token_service(web_ttl_minutes=1)
    issued = service.issue(user_id="user-1", email=None, scope="web", now=utcnow() - timedelta(minutes=5))

    with pytest.raises(TokenExpiredError):
        service.verify(token=issued.token)


def test_token_signed_with_other_secret():
    issued = make_token_service(jwt_secret="another-secret-that-is-long-enough-too").issue(
        user_id="user-1", email=None, scope="web", now=utcnow()
    )

    with pytest.raises(TokenSignatureInvalidError):
        make_token_service().verify(token=issued.token)


def test_garbage_and_unknown_scope_are_malformed():
    service = make_token_service()
    with pytest.raises(TokenMalformedError):
        service.verify(token="not-a-jwt")

    now = utcnow()
    forged = jwt.encode(
        {"sub": "user-1", "scope": "admin", "iat": int(now.timestamp()), "exp": int((now + timedelta(hours=1)).timestamp())},
        TEST_JWT_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(TokenMalformedError):
        service.verify(token=forged)


def test_refresh_tokens_are_random_and_hashed():
    service = make_token_service()
    first = service.generate_refresh_token()
    second = service.generate_refresh_token()

    assert first != second
    assert len(first) >= 64
    digest = service.hash_refresh_token(refresh_token=first)
    assert digest == service.hash_refresh_token(refresh_token=first)
    assert digest != first
    assert len(digest) == 64


def test_refresh_token_expiry_follows_ttl_days():
    now = utcnow()
    assert make_token_service(refresh_ttl_days=30).refresh_token_expires_at(now=now) == now + timedelta(days=30)
