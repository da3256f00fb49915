"""Access to campaign records served by the upstream helper API."""

from .client import CampaignClient, project_slug
from .config import CampaignConfig, load_campaign_config

__all__ = ["CampaignClient", "CampaignConfig", "load_campaign_config", "project_slug"]
