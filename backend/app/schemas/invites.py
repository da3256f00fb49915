"""API schemas for invite code endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..entitlements import InviteCode, InviteRedemption


class InviteCodeGenerateRequest(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None


class InviteCodeSummary(BaseModel):
    id: Optional[str] = None
    code: str
    expires_at: datetime
    created_at: datetime

    @classmethod
    def from_invite(cls, invite: InviteCode) -> "InviteCodeSummary":
        return cls(id=invite.id, code=invite.code, expires_at=invite.expires_at, created_at=invite.created_at)


class InviteCodeGenerateResponse(BaseModel):
    success: bool = True
    invite_code: InviteCodeSummary = Field(alias="inviteCode")

    model_config = ConfigDict(populate_by_name=True)


class InviteCodeListResponse(BaseModel):
    invite_codes: List[InviteCode] = Field(alias="inviteCodes")

    model_config = ConfigDict(populate_by_name=True)


class InviteCodeRedeemRequest(BaseModel):
    code: Optional[str] = None
    user_id: Optional[str] = Field(alias="userId", default=None)

    model_config = ConfigDict(populate_by_name=True)


class InviteCodeRedeemResponse(BaseModel):
    success: bool = True
    message: str = "Invite code validated successfully"
    access_expires_at: datetime

    @classmethod
    def from_redemption(cls, redemption: InviteRedemption) -> "InviteCodeRedeemResponse":
        return cls(access_expires_at=redemption.access_expires_at)
