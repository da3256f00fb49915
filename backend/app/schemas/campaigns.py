"""API schemas for campaign project records."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CampaignCountdown(BaseModel):
    start_date: Optional[str] = Field(alias="startDate", default=None)
    end_date: Optional[str] = Field(alias="endDate", default=None)

    model_config = ConfigDict(populate_by_name=True)


class CampaignBacker(BaseModel):
    name: str
    logo: Optional[str] = None
    type: Optional[str] = None
    round: Optional[str] = None
    slug: Optional[str] = None
    category: Optional[str] = None
    tier: Optional[int] = None


class CampaignProjectSubmission(BaseModel):
    """Administrator form payload forwarded to the upstream API."""

    name: str = Field(min_length=1)
    image: Optional[str] = None
    amount_raised: Optional[float] = None
    raise_type: Optional[str] = None
    rewards: Optional[str] = None
    status: str = "Active"
    type: str = "Campaign"
    platforms: List[str] = Field(default_factory=list)
    backers: List[CampaignBacker] = Field(default_factory=list)
    countdown: Optional[CampaignCountdown] = None

    model_config = ConfigDict(populate_by_name=True)


class CampaignProjectListResponse(BaseModel):
    projects: List[Dict[str, Any]]
