"""API schemas for payment endpoints."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..billing import PaymentInitialization, VerificationResult
from ..entitlements.catalog import BillingTerm


class PaymentInitializeRequest(BaseModel):
    amount: Optional[float] = None
    billing_cycle: Optional[str] = Field(alias="billingCycle", default=None)
    currency: Optional[str] = "USD"
    user_id: Optional[str] = Field(alias="userId", default=None)

    model_config = ConfigDict(populate_by_name=True)


class PaymentInitializeResponse(BaseModel):
    success: bool = True
    payment_url: str
    tx_ref: str

    @classmethod
    def from_initialization(cls, initialization: PaymentInitialization) -> "PaymentInitializeResponse":
        return cls(payment_url=initialization.payment_url, tx_ref=initialization.tx_ref)


class PaymentVerifyRequest(BaseModel):
    tx_ref: Optional[str] = None


class VerifiedSubscription(BaseModel):
    amount: float
    billing_cycle: str
    status: str
    expires_at: Optional[str] = None


class PaymentVerifyResponse(BaseModel):
    success: bool = True
    message: str = "Payment verified and subscription activated"
    subscription: VerifiedSubscription

    @classmethod
    def from_result(cls, result: VerificationResult) -> "PaymentVerifyResponse":
        subscription = result.subscription
        return cls(
            subscription=VerifiedSubscription(
                amount=subscription.amount,
                billing_cycle=subscription.billing_cycle,
                status=subscription.status,
                expires_at=subscription.expires_at.isoformat(),
            )
        )


class WebhookAcknowledgement(BaseModel):
    success: bool = True


class BillingPlan(BaseModel):
    billing_cycle: str = Field(alias="billingCycle")
    display_name: str = Field(alias="displayName")
    price: int
    currency: str
    term_days: int = Field(alias="termDays")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_term(cls, term: BillingTerm) -> "BillingPlan":
        return cls(
            billing_cycle=term.cycle.value,
            display_name=term.display_name,
            price=term.list_price,
            currency=term.currency,
            term_days=term.term_days,
        )


class BillingPlanListResponse(BaseModel):
    plans: List[BillingPlan]
