"""API routes for administrator invite codes and their redemption."""
from __future__ import annotations

import os
from typing import Optional

from fastapi import APIRouter, Cookie, Depends

from ... import app_context
from ..errors import AuthorizationError
from ..schemas.invites import (
    InviteCodeGenerateRequest,
    InviteCodeGenerateResponse,
    InviteCodeListResponse,
    InviteCodeRedeemRequest,
    InviteCodeRedeemResponse,
    InviteCodeSummary,
)
from ..services.entitlements import get_entitlement_service


_SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")


def _get_current_user(
    session_token: Optional[str] = Cookie(None, alias=_SESSION_COOKIE_NAME),
):
    return app_context.get_current_user(session_token)


router = APIRouter(prefix="/api/invite-code", tags=["invites"])


@router.post("/generate", response_model=InviteCodeGenerateResponse)
def generate_invite_code(
    payload: Optional[InviteCodeGenerateRequest] = None,
    *,
    current_user=Depends(_get_current_user),
) -> InviteCodeGenerateResponse:
    # The allow-list is checked against the session email; the body is informational.
    service = get_entitlement_service()
    invite = service.generate_invite_code(
        requester_id=str(current_user.id),
        requester_email=current_user.email,
    )
    return InviteCodeGenerateResponse(invite_code=InviteCodeSummary.from_invite(invite))


@router.get("/generate", response_model=InviteCodeListResponse)
def list_invite_codes(*, current_user=Depends(_get_current_user)) -> InviteCodeListResponse:
    service = get_entitlement_service()
    invites = service.list_invite_codes(requester_email=current_user.email)
    return InviteCodeListResponse(invite_codes=list(invites))


@router.post("/validate", response_model=InviteCodeRedeemResponse)
def redeem_invite_code(
    payload: InviteCodeRedeemRequest,
    *,
    current_user=Depends(_get_current_user),
) -> InviteCodeRedeemResponse:
    user_id = str(current_user.id)
    if payload.user_id and payload.user_id != user_id:
        raise AuthorizationError("Cannot redeem an invite code for another user")

    service = get_entitlement_service()
    redemption = service.redeem_invite_code(user_id=user_id, code=payload.code)
    return InviteCodeRedeemResponse.from_redemption(redemption)
