from __future__ import annotations


class DomainError(Exception):
    """Base for domain errors."""


class InvalidCredentialsError(DomainError):
    """Email/password, device or refresh credential did not match."""


class EmailAlreadyExistsError(DomainError):
    """An account with this email already exists."""


class TokenVerificationError(DomainError):
    """Session token could not be verified."""


class TokenExpiredError(TokenVerificationError):
    """Token or refresh credential is past its expiry."""


class TokenMalformedError(TokenVerificationError):
    """Token could not be decoded or is missing required claims."""


class TokenSignatureInvalidError(TokenVerificationError):
    """Token signature does not match the signing secret."""


class InvalidOrExpiredOAuthStateError(DomainError):
    """OAuth state is unknown, already consumed or expired."""


class UnsupportedOAuthProviderError(DomainError):
    """OAuth provider is not supported or not configured."""


class OAuthProviderError(DomainError):
    """OAuth provider exchange failed."""

    def __init__(self, message: str, *, code: str = "oauth_exchange_failed"):
        super().__init__(message)
        self.code = code


class PKCEMismatchError(DomainError):
    """Code verifier does not hash to the stored challenge."""


class DeviceNotFoundError(DomainError):
    """CLI device does not exist."""


class DeviceRevokedError(DomainError):
    """CLI device was revoked."""


class DeviceOwnershipError(DomainError):
    """CLI device belongs to another user."""


class RefreshTokenReusedError(DomainError):
    """Refresh token was already rotated."""


class FlowExpiredError(DomainError):
    """CLI auth flow is unknown, expired or already redeemed."""


class WebhookSignatureInvalidError(DomainError):
    """Webhook signature verification failed."""


class WebhookPayloadError(DomainError):
    """Webhook payload is missing required fields."""


class WebhookAlreadyProcessed(Exception):
    """Webhook event was already applied. A no-op signal, not a failure."""

    def __init__(self, stripe_event_id: str):
        super().__init__(stripe_event_id)
        self.stripe_event_id = stripe_event_id


class BillingError(DomainError):
    """Payment provider operation failed."""
