"""Custom exceptions used for feature gating enforcement."""
from __future__ import annotations

from fastapi import status

from ..errors import ServiceError


class FeatureGateError(ServiceError):
    """Represents an actionable gating failure surfaced to API callers."""

    code = "subscription_required"
    status_code = status.HTTP_402_PAYMENT_REQUIRED
