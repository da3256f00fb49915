"""API routes exposing payment initialization, verification and webhooks."""
from __future__ import annotations

import os
from typing import Any, Optional

from fastapi import APIRouter, Cookie, Depends, Header, Request

from ... import app_context
from ..billing import SIGNATURE_HEADER, PaymentCustomer
from ..entitlements import TERM_CATALOG
from ..errors import AuthorizationError
from ..schemas.billing import (
    BillingPlan,
    BillingPlanListResponse,
    PaymentInitializeRequest,
    PaymentInitializeResponse,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
    WebhookAcknowledgement,
)
from ..services.billing import get_billing_service


_SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")


def _get_current_user(
    session_token: Optional[str] = Cookie(None, alias=_SESSION_COOKIE_NAME),
):
    return app_context.get_current_user(session_token)


def _customer_for(current_user: Any) -> PaymentCustomer:
    return PaymentCustomer(
        user_id=str(current_user.id),
        email=getattr(current_user, "email", None),
        name=getattr(current_user, "name", None),
    )


router = APIRouter(prefix="/api/payment", tags=["payment"])


@router.get("/plans", response_model=BillingPlanListResponse)
def list_plans() -> BillingPlanListResponse:
    return BillingPlanListResponse(plans=[BillingPlan.from_term(term) for term in TERM_CATALOG.values()])


@router.post("/initialize", response_model=PaymentInitializeResponse)
def initialize_payment(
    payload: PaymentInitializeRequest,
    *,
    current_user=Depends(_get_current_user),
) -> PaymentInitializeResponse:
    customer = _customer_for(current_user)
    if payload.user_id and payload.user_id != customer.user_id:
        raise AuthorizationError("Cannot initialize a payment for another user")

    service = get_billing_service()
    initialization = service.initialize_payment(
        customer=customer,
        amount=payload.amount,
        billing_cycle=payload.billing_cycle,
        currency=payload.currency,
    )
    return PaymentInitializeResponse.from_initialization(initialization)


@router.post("/verify", response_model=PaymentVerifyResponse)
def verify_payment(
    payload: PaymentVerifyRequest,
    *,
    current_user=Depends(_get_current_user),
) -> PaymentVerifyResponse:
    service = get_billing_service()
    result = service.verify_payment(payload.tx_ref, customer=_customer_for(current_user))
    return PaymentVerifyResponse.from_result(result)


@router.post("/webhook", response_model=WebhookAcknowledgement)
async def receive_webhook(
    request: Request,
    signature: Optional[str] = Header(default=None, alias=SIGNATURE_HEADER),
) -> WebhookAcknowledgement:
    """Acknowledge every correctly signed delivery, including ignored events."""

    raw_body = await request.body()
    service = get_billing_service()
    service.handle_webhook(raw_body, signature)
    return WebhookAcknowledgement()
