"""Entitlements domain models and services."""

from .catalog import TERM_CATALOG, BillingTerm, compute_expiry, get_billing_term
from .config import EntitlementConfig, load_entitlement_config
from .models import (
    AccessStatus,
    BillingCycle,
    InviteAccessGrant,
    InviteCode,
    InviteRedemption,
    SubscriptionRecord,
    SubscriptionStatus,
)
from .service import (
    INVITE_CODE_ALPHABET,
    EntitlementService,
    InviteRepository,
    SubscriptionRepository,
    generate_invite_code_candidate,
)

__all__ = [
    "TERM_CATALOG",
    "BillingTerm",
    "compute_expiry",
    "get_billing_term",
    "EntitlementConfig",
    "load_entitlement_config",
    "AccessStatus",
    "BillingCycle",
    "InviteAccessGrant",
    "InviteCode",
    "InviteRedemption",
    "SubscriptionRecord",
    "SubscriptionStatus",
    "INVITE_CODE_ALPHABET",
    "EntitlementService",
    "InviteRepository",
    "SubscriptionRepository",
    "generate_invite_code_candidate",
]
