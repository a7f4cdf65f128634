from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from authcore.api.deps import (
    get_create_checkout_session_use_case,
    get_current_user,
    get_process_stripe_webhook_use_case,
    require_paid_access,
)
from authcore.api.schemas.billing import (
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    PaidAccessResponse,
    StripeWebhookResponse,
)
from authcore.application.dto.billing import CreateCheckoutSessionInput, StripeWebhookInput
from authcore.application.use_cases.create_checkout_session import CreateCheckoutSessionUseCase
from authcore.application.use_cases.process_stripe_webhook import ProcessStripeWebhookUseCase
from authcore.domain.entities.user import User
from authcore.domain.exceptions import BillingError, WebhookPayloadError, WebhookSignatureInvalidError
from authcore.shared.config import get_settings


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/payments/checkout-session", response_model=CreateCheckoutSessionResponse)
def create_checkout_session(
    req: CreateCheckoutSessionRequest,
    current_user: User = Depends(get_current_user),
    use_case: CreateCheckoutSessionUseCase = Depends(get_create_checkout_session_use_case),
):
    settings = get_settings()
    try:
        output = use_case.execute(
            CreateCheckoutSessionInput(
                user_id=current_user.id,
                payment_type=req.payment_type,
                success_url=settings.stripe_success_url,
                cancel_url=settings.stripe_cancel_url,
            )
        )
    except BillingError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return CreateCheckoutSessionResponse(
        checkout_session_id=output.checkout_session_id,
        checkout_url=output.checkout_url,
        payment_id=output.payment_id,
    )


@router.get("/payments/access", response_model=PaidAccessResponse)
def check_paid_access(current_user: User = Depends(require_paid_access)):
    return PaidAccessResponse(payment_required=False)


@router.post("/webhooks/payment-provider", response_model=StripeWebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    use_case: ProcessStripeWebhookUseCase = Depends(get_process_stripe_webhook_use_case),
):
    payload = await request.body()
    try:
        output = use_case.execute(StripeWebhookInput(signature=stripe_signature, payload=payload))
    except WebhookSignatureInvalidError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except WebhookPayloadError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except BillingError as exc:
        # Recorded on the ledger; a 5xx makes the provider deliver again.
        raise HTTPException(status_code=500, detail="Webhook processing failed.") from exc

    return StripeWebhookResponse(
        event_id=output.event_id,
        event_type=output.event_type,
        handled=output.handled,
        duplicate=output.duplicate,
    )
