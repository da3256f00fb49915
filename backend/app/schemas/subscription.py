"""API schemas for subscription status and dashboard gating."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements import AccessStatus
from ..feature_gates import DashboardView


class SubscriptionSummary(BaseModel):
    billing_cycle: str
    status: str
    expires_at: datetime


class InviteAccessSummary(BaseModel):
    expires_at: datetime


class SubscriptionStatusResponse(BaseModel):
    """``hasActiveSubscription`` reports access from either grant type."""

    has_active_subscription: bool = Field(alias="hasActiveSubscription")
    active_monthly: bool = Field(alias="activeMonthly")
    active_six_months: bool = Field(alias="activeSixMonths")
    has_active_invite_access: bool = Field(alias="hasActiveInviteAccess")
    subscriptions: List[SubscriptionSummary] = Field(default_factory=list)
    invite_access: Optional[InviteAccessSummary] = Field(alias="inviteAccess", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_status(cls, status: AccessStatus) -> "SubscriptionStatusResponse":
        return cls(
            has_active_subscription=status.has_access,
            active_monthly=status.active_monthly,
            active_six_months=status.active_six_months,
            has_active_invite_access=status.has_invite_access,
            subscriptions=[
                SubscriptionSummary(
                    billing_cycle=record.billing_cycle,
                    status=record.status,
                    expires_at=record.expires_at,
                )
                for record in status.subscriptions
            ],
            invite_access=(
                InviteAccessSummary(expires_at=status.invite_access.expires_at)
                if status.invite_access
                else None
            ),
        )


class DashboardViewResponse(BaseModel):
    view: DashboardView
    has_access: Optional[bool] = Field(alias="hasAccess", default=None)

    model_config = ConfigDict(populate_by_name=True)
