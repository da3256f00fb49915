"""API routes reporting subscription status and the dashboard view."""
from __future__ import annotations

import logging
import os
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Query

from ... import app_context
from ..errors import AuthorizationError, ServiceError
from ..feature_gates import is_gated_path, resolve_dashboard_view
from ..schemas.subscription import DashboardViewResponse, SubscriptionStatusResponse
from ..services.entitlements import get_entitlement_service

logger = logging.getLogger(__name__)


_SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")


def _get_optional_current_user(
    session_token: Optional[str] = Cookie(None, alias=_SESSION_COOKIE_NAME),
):
    return app_context.get_optional_current_user(session_token)


router = APIRouter(prefix="/api", tags=["subscription"])


@router.get("/subscription/status", response_model=SubscriptionStatusResponse)
def read_subscription_status(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    *,
    current_user=Depends(_get_optional_current_user),
) -> SubscriptionStatusResponse:
    """Report the caller's grants; ``userId`` must match the session when one exists."""

    if current_user is not None and user_id and user_id != str(current_user.id):
        raise AuthorizationError("Cannot read subscription status for another user")

    service = get_entitlement_service()
    status = service.has_access(user_id)
    return SubscriptionStatusResponse.from_status(status)


@router.get("/dashboard/view", response_model=DashboardViewResponse)
def read_dashboard_view(
    path: str = Query(default="/tge"),
    pricing: bool = Query(default=False),
    *,
    current_user=Depends(_get_optional_current_user),
) -> DashboardViewResponse:
    access = None
    if current_user is not None and is_gated_path(path):
        try:
            access = get_entitlement_service().has_access(str(current_user.id))
        except ServiceError:
            logger.warning("Access check failed; showing paywall", exc_info=True)

    view = resolve_dashboard_view(
        path=path,
        authenticated=current_user is not None,
        access=access,
        pricing_open=pricing,
    )
    return DashboardViewResponse(view=view, has_access=access.has_access if access else None)
