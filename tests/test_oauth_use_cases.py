from __future__ import annotations

from datetime import timedelta

import pytest

from authcore.application.dto.cli import RegisterDeviceInput, StartDeviceFlowInput
from authcore.application.dto.oauth import InitiateOAuthInput, OAuthCallbackInput, OAuthIdentity
from authcore.application.use_cases.approve_device_flow import ApproveDeviceFlowUseCase
from authcore.application.use_cases.cleanup_oauth_states import CleanupExpiredOAuthStatesUseCase
from authcore.application.use_cases.complete_oauth_callback import CompleteOAuthCallbackUseCase
from authcore.application.use_cases.initiate_oauth import InitiateOAuthUseCase
from authcore.application.use_cases.register_device import RegisterDeviceUseCase
from authcore.application.use_cases.resolve_entitlement import ResolveEntitlementUseCase
from authcore.application.use_cases.start_device_flow import StartDeviceFlowUseCase
from authcore.domain.exceptions import (
    InvalidOrExpiredOAuthStateError,
    OAuthProviderError,
    UnsupportedOAuthProviderError,
)
from authcore.domain.services.pkce import compute_code_challenge
from port_fakes import (
    FakeBillingStore,
    FakeCredentialStore,
    FakeDeviceFlowPort,
    FakeOAuthProvider,
    FakeOAuthStatePort,
    days_from_now,
    make_invite,
    make_token_service,
    make_user,
    utcnow,
)


REDIRECT_URI = "http://localhost:8000/auth/oauth/google/callback"


class OAuthHarness:
    def __init__(self, identity: OAuthIdentity | None = None):
        self.states = FakeOAuthStatePort()
        self.store = FakeCredentialStore()
        self.devices = FakeDeviceFlowPort()
        self.provider = FakeOAuthProvider("google", identity)
        self.providers = {"google": self.provider}
        self.token_service = make_token_service()
        self.initiate = InitiateOAuthUseCase(
            oauth_state_port=self.states,
            providers=self.providers,
            state_ttl_minutes=10,
        )
        self.callback = CompleteOAuthCallbackUseCase(
            oauth_state_port=self.states,
            providers=self.providers,
            credential_store=self.store,
            token_port=self.token_service,
            resolve_entitlement=ResolveEntitlementUseCase(
                credential_store=self.store,
                entitlements_port=FakeBillingStore(),
            ),
            approve_device_flow=ApproveDeviceFlowUseCase(device_flow_port=self.devices),
        )

    def login(self, *, cli_flow_state: str | None = None, code: str = "auth-code"):
        started = self.initiate.execute(
            InitiateOAuthInput(provider="google", redirect_uri=REDIRECT_URI, cli_flow_state=cli_flow_state)
        )
        return self.callback.execute(OAuthCallbackInput(provider="google", code=code, state=started.state))


def test_initiate_persists_state_and_builds_authorization_url():
    harness = OAuthHarness()

    output = harness.initiate.execute(InitiateOAuthInput(provider="google", redirect_uri=REDIRECT_URI))

    assert f"state={output.state}" in output.authorization_url
    stored = harness.states.states[output.state]
    assert stored.provider == "google"
    assert stored.redirect_uri == REDIRECT_URI
    assert stored.expires_at - stored.created_at == timedelta(minutes=10)
    assert harness.states.cleanup_calls == 1


def test_initiate_rejects_unknown_provider():
    harness = OAuthHarness()

    with pytest.raises(UnsupportedOAuthProviderError):
        harness.initiate.execute(InitiateOAuthInput(provider="myspace", redirect_uri=REDIRECT_URI))


def test_callback_creates_user_and_consumes_state():
    harness = OAuthHarness()

    output = harness.login()

    assert output.is_new_user is True
    assert output.cli_flow_completed is False
    assert output.result.auth_user.email == "oauth.user@example.com"
    assert output.result.auth_user.provider == "google"
    assert harness.token_service.verify(token=output.result.auth_token).user_id == output.result.auth_user.id
    assert harness.states.states == {}
    assert harness.provider.exchanged == [("auth-code", REDIRECT_URI)]


def test_second_login_reuses_existing_user():
    harness = OAuthHarness()
    first = harness.login()

    second = harness.login()

    assert second.is_new_user is False
    assert second.result.auth_user.id == first.result.auth_user.id
    assert len(harness.store.users) == 1


def test_state_cannot_be_replayed():
    harness = OAuthHarness()
    started = harness.initiate.execute(InitiateOAuthInput(provider="google", redirect_uri=REDIRECT_URI))
    harness.callback.execute(OAuthCallbackInput(provider="google", code="c1", state=started.state))

    with pytest.raises(InvalidOrExpiredOAuthStateError):
        harness.callback.execute(OAuthCallbackInput(provider="google", code="c2", state=started.state))
    assert harness.provider.exchanged == [("c1", REDIRECT_URI)]


def test_unknown_state_never_reaches_provider():
    harness = OAuthHarness()

    with pytest.raises(InvalidOrExpiredOAuthStateError):
        harness.callback.execute(OAuthCallbackInput(provider="google", code="c", state="forged"))
    assert harness.provider.exchanged == []


def test_expired_state_is_rejected_and_consumed():
    harness = OAuthHarness()
    now = utcnow()
    harness.states.create_state(
        state="old",
        provider="google",
        redirect_uri=REDIRECT_URI,
        cli_flow_state=None,
        created_at=now - timedelta(minutes=20),
        expires_at=now - timedelta(minutes=10),
    )

    with pytest.raises(InvalidOrExpiredOAuthStateError):
        harness.callback.execute(OAuthCallbackInput(provider="google", code="c", state="old"))
    assert "old" not in harness.states.states


def test_state_issued_for_other_provider_is_rejected():
    harness = OAuthHarness()
    harness.providers["github"] = FakeOAuthProvider("github")
    started = harness.initiate.execute(InitiateOAuthInput(provider="github", redirect_uri=REDIRECT_URI))

    with pytest.raises(InvalidOrExpiredOAuthStateError):
        harness.callback.execute(OAuthCallbackInput(provider="google", code="c", state=started.state))


def test_unverified_provider_email_is_refused():
    harness = OAuthHarness(
        OAuthIdentity(
            provider="google",
            provider_user_id="sub-2",
            email="unverified@example.com",
            email_verified=False,
            name=None,
        )
    )

    with pytest.raises(OAuthProviderError) as exc_info:
        harness.login()
    assert exc_info.value.code == "email_not_verified"
    assert harness.store.users == {}


def test_existing_account_with_same_email_is_returned_not_duplicated():
    harness = OAuthHarness()
    local_user = make_user(email="oauth.user@example.com")
    harness.store.users[local_user.id] = local_user

    output = harness.login()

    assert output.is_new_user is False
    assert output.result.auth_user.id == local_user.id
    assert harness.store.users[local_user.id].provider == "local"
    assert harness.store.users[local_user.id].provider_user_id is None
    assert len(harness.store.users) == 1

    again = harness.login()

    assert again.result.auth_user.id == local_user.id
    assert len(harness.store.users) == 1


def test_new_oauth_user_consumes_invite():
    harness = OAuthHarness()
    harness.store.add_invite(make_invite("oauth.user@example.com", expires_at=days_from_now(3)))

    output = harness.login()

    assert output.result.payment_user.payment_required is False
    assert output.result.payment_user.has_valid_invite is True
    assert harness.store.invites["oauth.user@example.com"].used_by_user_id == output.result.auth_user.id


def test_callback_completes_linked_cli_flow():
    harness = OAuthHarness()
    device = RegisterDeviceUseCase(device_flow_port=harness.devices).execute(
        RegisterDeviceInput(device_fingerprint="fp-1", device_name="laptop", user_id=None)
    )
    flow = StartDeviceFlowUseCase(
        device_flow_port=harness.devices,
        flow_ttl_minutes=10,
        verification_url="http://localhost:3000/cli/authorize",
    ).execute(StartDeviceFlowInput(device_id=device.id, code_challenge=compute_code_challenge("v" * 64)))

    output = harness.login(cli_flow_state=flow.state)

    assert output.cli_flow_completed is True
    stored = harness.devices.flows[flow.flow_id]
    assert stored.status == "completed"
    assert stored.user_id == output.result.auth_user.id
    assert harness.devices.devices[device.id].user_id == output.result.auth_user.id


def test_stale_cli_flow_does_not_block_browser_login():
    harness = OAuthHarness()

    output = harness.login(cli_flow_state="no-such-flow")

    assert output.cli_flow_completed is False
    assert output.result.auth_token


def test_cleanup_removes_only_expired_states():
    states = FakeOAuthStatePort()
    now = utcnow()
    for name, expires_at in [("old", now - timedelta(minutes=1)), ("fresh", now + timedelta(minutes=5))]:
        states.create_state(
            state=name,
            provider="google",
            redirect_uri=REDIRECT_URI,
            cli_flow_state=None,
            created_at=now - timedelta(minutes=10),
            expires_at=expires_at,
        )

    removed = CleanupExpiredOAuthStatesUseCase(oauth_state_port=states).execute()

    assert removed == 1
    assert list(states.states) == ["fresh"]
