"""Helpers for enforcing access checks on API and service layers."""
from __future__ import annotations

from typing import Optional

from ..entitlements.models import AccessStatus
from .exceptions import FeatureGateError


def require_access(
    access: Optional[AccessStatus],
    *,
    error_code: str = "subscription_required",
    message: Optional[str] = None,
) -> AccessStatus:
    """Ensure the caller currently holds a subscription or invite grant.

    Parameters
    ----------
    access:
        Result of :meth:`EntitlementService.has_access`. ``None`` means the
        status check could not be completed and is treated as no access.
    error_code:
        Optional override for the surfaced error code. Defaults to
        ``"subscription_required"``.
    message:
        Optional human-friendly message explaining the failure.

    Returns
    -------
    AccessStatus
        The same status, for call sites that want to keep using it.
    """

    if access is None or not access.has_access:
        raise FeatureGateError(
            message or "An active subscription or invite access is required.",
            code=error_code,
            detail={"pricing_required": True},
        )
    return access
