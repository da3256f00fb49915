"""Decides which of loading, paywall, pricing or content a dashboard route shows."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from ..entitlements.models import AccessStatus

GATED_PATH_PREFIX = "/tge"


class DashboardView(str, Enum):
    """Exactly one of these is shown for a navigation."""

    SIGN_IN = "sign_in"
    LOADING = "loading"
    PAYWALL = "paywall"
    PRICING = "pricing"
    CONTENT = "content"


def is_gated_path(path: Optional[str]) -> bool:
    if not path:
        return False
    return path == GATED_PATH_PREFIX or path.startswith(f"{GATED_PATH_PREFIX}/")


def resolve_dashboard_view(
    *,
    path: Optional[str],
    authenticated: bool,
    loading: bool = False,
    access: Optional[AccessStatus] = None,
    pricing_open: bool = False,
) -> DashboardView:
    """Pick the single view for a navigation.

    Precedence on a gated route is loading, then the pricing modal, then
    content when access is confirmed, and the paywall otherwise. An access
    check that failed (``access is None`` once loading ends) shows the paywall.
    """

    if not is_gated_path(path):
        return DashboardView.CONTENT
    if not authenticated:
        return DashboardView.SIGN_IN
    if loading:
        return DashboardView.LOADING
    if pricing_open:
        return DashboardView.PRICING
    if access is not None and access.has_access:
        return DashboardView.CONTENT
    return DashboardView.PAYWALL


@dataclass(frozen=True)
class PaywallState:
    """Client-side paywall state machine driven by navigation and access checks."""

    path: str = "/"
    authenticated: bool = False
    loading: bool = False
    access: Optional[AccessStatus] = None
    pricing_open: bool = False

    @property
    def view(self) -> DashboardView:
        return resolve_dashboard_view(
            path=self.path,
            authenticated=self.authenticated,
            loading=self.loading,
            access=self.access,
            pricing_open=self.pricing_open,
        )

    @property
    def needs_access_check(self) -> bool:
        return self.loading

    def navigate(self, path: str, *, authenticated: bool) -> "PaywallState":
        """Every navigation to a gated route re-checks access."""

        gated = is_gated_path(path) and authenticated
        return PaywallState(
            path=path,
            authenticated=authenticated,
            loading=gated,
            access=None,
            pricing_open=False,
        )

    def access_resolved(self, access: Optional[AccessStatus]) -> "PaywallState":
        """Record the outcome of a check; ``None`` means the check failed."""

        return replace(self, loading=False, access=access, pricing_open=False)

    def open_pricing(self) -> "PaywallState":
        return replace(self, pricing_open=True)

    def close_pricing(self) -> "PaywallState":
        return replace(self, pricing_open=False)
