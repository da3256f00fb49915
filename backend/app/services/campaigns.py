"""Application wiring for the campaign API client."""
from __future__ import annotations

from functools import lru_cache

from ..campaigns import CampaignClient, load_campaign_config


@lru_cache(maxsize=1)
def get_campaign_client() -> CampaignClient:
    return CampaignClient(load_campaign_config())


__all__ = ["get_campaign_client"]
