"""API routes for the gated TGE campaign data."""
from __future__ import annotations

import os
from typing import Any, Dict, Optional

from fastapi import APIRouter, Cookie, Depends, Header, Response, status

from ... import app_context
from ..feature_gates import require_access
from ..schemas.campaigns import CampaignProjectListResponse, CampaignProjectSubmission
from ..services.campaigns import get_campaign_client
from ..services.entitlements import get_entitlement_service


_SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")


def _get_current_user(
    session_token: Optional[str] = Cookie(None, alias=_SESSION_COOKIE_NAME),
):
    return app_context.get_current_user(session_token)


def _require_subscriber(current_user=Depends(_get_current_user)):
    require_access(get_entitlement_service().has_access(str(current_user.id)))
    return current_user


router = APIRouter(prefix="/api/tge", tags=["campaigns"])


@router.get("/projects", response_model=CampaignProjectListResponse)
def list_projects(*, current_user=Depends(_require_subscriber)) -> CampaignProjectListResponse:
    return CampaignProjectListResponse(projects=get_campaign_client().list_projects())


@router.get("/projects/{slug}")
def get_project(slug: str, *, current_user=Depends(_require_subscriber)) -> Dict[str, Any]:
    return get_campaign_client().get_project(slug)


@router.get("/platform-images")
def list_platform_images(*, current_user=Depends(_require_subscriber)) -> Dict[str, Any]:
    return get_campaign_client().list_platform_images()


@router.post("/projects", status_code=status.HTTP_201_CREATED)
def submit_project(
    payload: CampaignProjectSubmission,
    admin_password: Optional[str] = Header(default=None, alias="X-Admin-Password"),
) -> Dict[str, Any]:
    return get_campaign_client().submit_project(
        payload.model_dump(exclude_none=True),
        admin_password=admin_password,
    )


@router.delete("/projects/{slug}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    slug: str,
    admin_password: Optional[str] = Header(default=None, alias="X-Admin-Password"),
) -> Response:
    get_campaign_client().delete_project(slug, admin_password=admin_password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
