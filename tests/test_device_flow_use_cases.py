from __future__ import annotations

import secrets
from dataclasses import replace
from datetime import timedelta

import pytest

from authcore.application.dto.auth import VerifySessionInput
from authcore.application.dto.cli import (
    ApproveDeviceFlowInput,
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
from authcore.application.use_cases.verify_session import VerifySessionUseCase
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
from authcore.domain.services.pkce import compute_code_challenge
from port_fakes import FakeCredentialStore, FakeDeviceFlowPort, make_token_service, make_user, utcnow


VERIFICATION_URL = "http://localhost:3000/cli/authorize"


class DeviceHarness:
    def __init__(self, devices: FakeDeviceFlowPort | None = None):
        self.devices = devices or FakeDeviceFlowPort()
        self.store = FakeCredentialStore()
        self.token_service = make_token_service()
        self.user = make_user(user_id="user-1")
        self.other = make_user(user_id="user-2", email="mallory@example.com")
        self.store.users[self.user.id] = self.user
        self.store.users[self.other.id] = self.other

        self.register = RegisterDeviceUseCase(device_flow_port=self.devices)
        self.start = StartDeviceFlowUseCase(
            device_flow_port=self.devices,
            flow_ttl_minutes=10,
            verification_url=VERIFICATION_URL,
        )
        self.approve = ApproveDeviceFlowUseCase(device_flow_port=self.devices)
        self.poll = PollDeviceFlowUseCase(
            device_flow_port=self.devices,
            credential_store=self.store,
            token_port=self.token_service,
        )
        self.refresh = RefreshDeviceTokenUseCase(
            device_flow_port=self.devices,
            credential_store=self.store,
            token_port=self.token_service,
        )
        self.revoke = RevokeDeviceUseCase(device_flow_port=self.devices)
        self.verify = VerifySessionUseCase(
            credential_store=self.store,
            device_flow_port=self.devices,
            token_port=self.token_service,
        )

    def new_device(self, fingerprint: str = "fp-1"):
        return self.register.execute(
            RegisterDeviceInput(device_fingerprint=fingerprint, device_name="laptop", user_id=None)
        )

    def start_flow(self, device_id: str):
        verifier = secrets.token_urlsafe(64)
        flow = self.start.execute(
            StartDeviceFlowInput(device_id=device_id, code_challenge=compute_code_challenge(verifier))
        )
        return flow, verifier

    def paired(self):
        device = self.new_device()
        flow, verifier = self.start_flow(device.id)
        self.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=self.user.id))
        result = self.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=verifier))
        return device, result.tokens



class ConcurrentWinnerDevicePort(FakeDeviceFlowPort):
    """Lets another caller win the next redeem or rotation just before this one."""

    def __init__(self):
        super().__init__()
        self.race_redeem = False
        self.race_rotation = False

    def redeem_flow(self, *, flow_id, redeemed_at):
        if self.race_redeem:
            super().redeem_flow(flow_id=flow_id, redeemed_at=redeemed_at)
        return super().redeem_flow(flow_id=flow_id, redeemed_at=redeemed_at)

    def revoke_refresh_token(self, *, token_id, revoked_at):
        if self.race_rotation:
            super().revoke_refresh_token(token_id=token_id, revoked_at=revoked_at)
        return super().revoke_refresh_token(token_id=token_id, revoked_at=revoked_at)

@pytest.fixture
def harness() -> DeviceHarness:
    return DeviceHarness()


def test_full_pairing_flow_issues_usable_tokens(harness):
    device = harness.new_device()
    assert device.is_provisional

    flow, verifier = harness.start_flow(device.id)
    assert flow.verification_url == f"{VERIFICATION_URL}?state={flow.state}"

    pending = harness.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=verifier))
    assert pending.status == "pending"
    assert pending.tokens is None

    harness.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=harness.user.id))
    completed = harness.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=verifier))

    assert completed.status == "completed"
    tokens = completed.tokens
    assert tokens.device_id == device.id
    assert tokens.user_id == harness.user.id
    session = harness.verify.execute(VerifySessionInput(token=tokens.access_token))
    assert session.claims.scope == "cli"
    assert session.claims.device_id == device.id
    assert harness.devices.devices[device.id].user_id == harness.user.id
    assert harness.devices.devices[device.id].last_used_at is not None


def test_completed_flow_is_redeemable_once(harness):
    device = harness.new_device()
    flow, verifier = harness.start_flow(device.id)
    harness.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=harness.user.id))
    harness.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=verifier))

    with pytest.raises(FlowExpiredError):
        harness.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=verifier))
    assert len(harness.devices.refresh_tokens) == 1


def test_wrong_verifier_does_not_burn_the_flow(harness):
    device = harness.new_device()
    flow, verifier = harness.start_flow(device.id)
    harness.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=harness.user.id))

    with pytest.raises(PKCEMismatchError):
        harness.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=secrets.token_urlsafe(64)))
    assert harness.devices.refresh_tokens == {}

    result = harness.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=verifier))
    assert result.status == "completed"


def test_flow_past_expiry_reports_expired(harness):
    device = harness.new_device()
    flow, verifier = harness.start_flow(device.id)
    stored = harness.devices.flows[flow.flow_id]
    harness.devices.flows[flow.flow_id] = replace(stored, expires_at=utcnow() - timedelta(seconds=1))

    result = harness.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=verifier))

    assert result.status == "expired"
    assert harness.devices.flows[flow.flow_id].status == "expired"
    with pytest.raises(FlowExpiredError):
        harness.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=harness.user.id))


def test_approved_flow_stays_redeemable_after_ttl(harness):
    device = harness.new_device()
    flow, verifier = harness.start_flow(device.id)
    harness.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=harness.user.id))
    stored = harness.devices.flows[flow.flow_id]
    harness.devices.flows[flow.flow_id] = replace(stored, expires_at=utcnow() - timedelta(seconds=1))

    result = harness.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=verifier))

    assert result.status == "completed"
    assert result.tokens.device_id == device.id
    assert harness.devices.flows[flow.flow_id].redeemed_at is not None


def test_unknown_flow(harness):
    with pytest.raises(FlowExpiredError):
        harness.poll.execute(PollDeviceFlowInput(flow_id="missing", code_verifier="v" * 64))


def test_flow_cannot_be_approved_twice(harness):
    device = harness.new_device()
    flow, _ = harness.start_flow(device.id)
    harness.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=harness.user.id))

    with pytest.raises(FlowExpiredError):
        harness.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=harness.user.id))


def test_device_paired_to_other_user_cannot_be_claimed(harness):
    device, _ = harness.paired()
    flow, _ = harness.start_flow(device.id)

    with pytest.raises(DeviceOwnershipError):
        harness.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=harness.other.id))
    assert harness.devices.flows[flow.flow_id].status == "pending"


def test_start_rejects_plain_method_and_bad_challenge(harness):
    device = harness.new_device()

    with pytest.raises(ValueError):
        harness.start.execute(
            StartDeviceFlowInput(device_id=device.id, code_challenge="a" * 43, code_challenge_method="plain")
        )
    with pytest.raises(ValueError):
        harness.start.execute(StartDeviceFlowInput(device_id=device.id, code_challenge="short"))


def test_start_for_unknown_or_revoked_device(harness):
    with pytest.raises(DeviceNotFoundError):
        harness.start_flow("missing")

    device, _ = harness.paired()
    harness.revoke.execute(RevokeDeviceInput(device_id=device.id, user_id=harness.user.id))
    with pytest.raises(DeviceRevokedError):
        harness.start_flow(device.id)


def test_register_device_is_idempotent_per_fingerprint(harness):
    first = harness.new_device("fp-same")
    second = harness.new_device("fp-same")

    assert first.id == second.id
    with pytest.raises(ValueError):
        harness.register.execute(RegisterDeviceInput(device_fingerprint="  ", device_name="x", user_id=None))


def test_refresh_rotates_and_detects_reuse(harness):
    device, tokens = harness.paired()

    rotated = harness.refresh.execute(RefreshDeviceTokenInput(device_id=device.id, refresh_token=tokens.refresh_token))

    assert rotated.refresh_token != tokens.refresh_token
    assert harness.verify.execute(VerifySessionInput(token=rotated.access_token)).user.id == harness.user.id

    with pytest.raises(RefreshTokenReusedError):
        harness.refresh.execute(RefreshDeviceTokenInput(device_id=device.id, refresh_token=tokens.refresh_token))

    again = harness.refresh.execute(RefreshDeviceTokenInput(device_id=device.id, refresh_token=rotated.refresh_token))
    assert again.device_id == device.id


def test_refresh_with_unknown_token_or_wrong_device(harness):
    device, tokens = harness.paired()

    with pytest.raises(InvalidCredentialsError):
        harness.refresh.execute(RefreshDeviceTokenInput(device_id=device.id, refresh_token="nope"))
    with pytest.raises(InvalidCredentialsError):
        harness.refresh.execute(RefreshDeviceTokenInput(device_id="other", refresh_token=tokens.refresh_token))
    with pytest.raises(InvalidCredentialsError):
        harness.refresh.execute(RefreshDeviceTokenInput(device_id=device.id, refresh_token="   "))


def test_refresh_with_expired_token(harness):
    device, tokens = harness.paired()
    token_hash = harness.token_service.hash_refresh_token(refresh_token=tokens.refresh_token)
    stored = harness.devices.get_refresh_token_by_hash(token_hash=token_hash)
    harness.devices.refresh_tokens[stored.id] = replace(stored, expires_at=utcnow() - timedelta(minutes=1))

    with pytest.raises(TokenExpiredError):
        harness.refresh.execute(RefreshDeviceTokenInput(device_id=device.id, refresh_token=tokens.refresh_token))


def test_revoked_device_cannot_refresh_or_use_access_token(harness):
    device, tokens = harness.paired()

    revoked = harness.revoke.execute(RevokeDeviceInput(device_id=device.id, user_id=harness.user.id))

    assert revoked.is_revoked
    with pytest.raises(DeviceRevokedError):
        harness.refresh.execute(RefreshDeviceTokenInput(device_id=device.id, refresh_token=tokens.refresh_token))
    with pytest.raises(DeviceRevokedError):
        harness.verify.execute(VerifySessionInput(token=tokens.access_token))


def test_revoke_checks_ownership_and_is_idempotent(harness):
    device, _ = harness.paired()

    with pytest.raises(DeviceNotFoundError):
        harness.revoke.execute(RevokeDeviceInput(device_id="missing", user_id=harness.user.id))
    with pytest.raises(DeviceOwnershipError):
        harness.revoke.execute(RevokeDeviceInput(device_id=device.id, user_id=harness.other.id))

    first = harness.revoke.execute(RevokeDeviceInput(device_id=device.id, user_id=harness.user.id))
    second = harness.revoke.execute(RevokeDeviceInput(device_id=device.id, user_id=harness.user.id))
    assert first.revoked_at == second.revoked_at


def test_list_devices_only_returns_own_devices(harness):
    device, _ = harness.paired()
    harness.new_device("fp-unpaired")

    listed = ListDevicesUseCase(device_flow_port=harness.devices).execute(user_id=harness.user.id)

    assert [item.id for item in listed] == [device.id]


def test_redeem_lost_to_concurrent_poll_issues_nothing():
    devices = ConcurrentWinnerDevicePort()
    harness = DeviceHarness(devices)
    device = harness.new_device()
    flow, verifier = harness.start_flow(device.id)
    harness.approve.execute(ApproveDeviceFlowInput(state=flow.state, user_id=harness.user.id))
    devices.race_redeem = True

    with pytest.raises(FlowExpiredError):
        harness.poll.execute(PollDeviceFlowInput(flow_id=flow.flow_id, code_verifier=verifier))

    assert devices.refresh_tokens == {}


def test_rotation_lost_to_concurrent_refresh_inserts_nothing():
    devices = ConcurrentWinnerDevicePort()
    harness = DeviceHarness(devices)
    device, tokens = harness.paired()
    tokens_before = dict(devices.refresh_tokens)
    devices.race_rotation = True

    with pytest.raises(RefreshTokenReusedError):
        harness.refresh.execute(RefreshDeviceTokenInput(device_id=device.id, refresh_token=tokens.refresh_token))

    assert devices.refresh_tokens == tokens_before
