"""Domain models for access grants: subscriptions and invite codes."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BillingCycle(str, Enum):
    """Subscription terms sold on the pricing page."""

    MONTHLY = "monthly"
    SIX_MONTHS = "six_months"


class SubscriptionStatus(str, Enum):
    """Known subscription states. Providers may report others verbatim."""

    ACTIVE = "active"
    PENDING = "pending"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SubscriptionRecord(BaseModel):
    """A paid subscription keyed by the provider transaction reference."""

    id: Optional[str] = None
    user_id: str
    tx_ref: str
    amount: float = 0
    currency: str = "USD"
    billing_cycle: str
    subscription_type: str = "tge_access"
    status: str = SubscriptionStatus.ACTIVE.value
    payment_provider: str = "flutterwave"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None
    expires_at: datetime

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @property
    def is_monthly(self) -> bool:
        return self.billing_cycle == BillingCycle.MONTHLY.value

    def grants_access_at(self, moment: datetime) -> bool:
        """Active subscriptions grant access up to and including ``expires_at``."""

        return self.status == SubscriptionStatus.ACTIVE.value and self.expires_at >= moment


class InviteCode(BaseModel):
    """Administrator issued code redeemable once for temporary access."""

    id: Optional[str] = None
    code: str = Field(min_length=1)
    created_by: str
    used_by: Optional[str] = None
    used_at: Optional[datetime] = None
    expires_at: datetime
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_redeemed(self) -> bool:
        return self.used_by is not None

    def is_expired_at(self, moment: datetime) -> bool:
        return moment > self.expires_at


class InviteAccessGrant(BaseModel):
    """Temporary entitlement created when an invite code is redeemed."""

    id: Optional[str] = None
    user_id: str
    invite_code_id: Optional[str] = None
    expires_at: datetime
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def grants_access_at(self, moment: datetime) -> bool:
        return self.is_active and self.expires_at >= moment


class AccessStatus(BaseModel):
    """Result of an access evaluation for a single user at a point in time."""

    user_id: str
    has_access: bool
    active_monthly: bool
    active_six_months: bool
    has_invite_access: bool
    subscriptions: Tuple[SubscriptionRecord, ...] = ()
    invite_access: Optional[InviteAccessGrant] = None
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class InviteRedemption(BaseModel):
    """Outcome of a successful invite code redemption."""

    code: str
    user_id: str
    grant: InviteAccessGrant

    model_config = ConfigDict(frozen=True)

    @property
    def access_expires_at(self) -> datetime:
        return self.grant.expires_at
