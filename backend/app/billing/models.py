"""Domain models for the payment reconciliation flow."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements.models import SubscriptionRecord


class WebhookEventType(str, Enum):
    """Provider webhook events the application reacts to."""

    CHARGE_COMPLETED = "charge.completed"
    SUBSCRIPTION_ACTIVATED = "subscription.activated"
    SUBSCRIPTION_UPDATED = "subscription.updated"


class PaymentCustomer(BaseModel):
    """Identity of the person paying, as known to the session."""

    user_id: str
    email: Optional[str] = None
    name: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class PaymentInitialization(BaseModel):
    """Hosted checkout created for a single payment attempt."""

    tx_ref: str
    payment_url: str
    billing_cycle: str
    amount: float
    currency: str

    model_config = ConfigDict(frozen=True)


class ProviderTransaction(BaseModel):
    """Normalized view of a verify-by-reference response."""

    tx_ref: str
    status: Optional[str] = None
    transaction_status: Optional[str] = None
    transaction_id: Optional[str] = None
    amount: float = 0
    currency: str = "USD"
    customer_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def is_successful(self) -> bool:
        return self.status == "success" and self.transaction_status == "successful"

    @property
    def billing_cycle(self) -> Optional[str]:
        value = self.meta.get("billing_cycle")
        return str(value) if value else None

    @classmethod
    def from_provider_payload(cls, tx_ref: str, payload: Mapping[str, Any]) -> "ProviderTransaction":
        """Build from the provider's JSON envelope ``{status, data: {...}}``."""

        data = payload.get("data")
        if not isinstance(data, Mapping):
            data = {}
        customer = data.get("customer")
        if not isinstance(customer, Mapping):
            customer = {}
        meta = data.get("meta")
        if not isinstance(meta, Mapping):
            meta = {}
        amount = data.get("amount")
        return cls(
            tx_ref=str(data.get("tx_ref") or tx_ref),
            status=_optional_str(payload.get("status")),
            transaction_status=_optional_str(data.get("status")),
            transaction_id=_optional_str(data.get("id")),
            amount=float(amount) if isinstance(amount, (int, float)) else 0,
            currency=str(data.get("currency") or "USD"),
            customer_id=_optional_str(customer.get("id")),
            customer_email=_optional_str(customer.get("email")),
            customer_name=_optional_str(customer.get("name")),
            meta=dict(meta),
        )


class VerificationResult(BaseModel):
    """Outcome of a successful verification."""

    subscription: SubscriptionRecord
    created: bool

    model_config = ConfigDict(frozen=True)


class WebhookEvent(BaseModel):
    """Webhook delivery whose signature has already been checked."""

    event_id: str
    event_type: str
    data: Dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    @property
    def known_type(self) -> Optional[WebhookEventType]:
        try:
            return WebhookEventType(self.event_type)
        except ValueError:
            return None


def _optional_str(value: object) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


__all__ = [
    "PaymentCustomer",
    "PaymentInitialization",
    "ProviderTransaction",
    "VerificationResult",
    "WebhookEvent",
    "WebhookEventType",
]
