"""Feature gating utilities coordinating access enforcement."""
from .context import (
    GATED_PATH_PREFIX,
    DashboardView,
    PaywallState,
    is_gated_path,
    resolve_dashboard_view,
)
from .enforcement import require_access
from .exceptions import FeatureGateError

__all__ = [
    "GATED_PATH_PREFIX",
    "DashboardView",
    "FeatureGateError",
    "PaywallState",
    "is_gated_path",
    "require_access",
    "resolve_dashboard_view",
]
