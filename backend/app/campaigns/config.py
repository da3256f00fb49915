"""Configuration for the upstream campaign data API."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..settings import to_float


@dataclass(frozen=True)
class CampaignConfig:
    api_base_url: str
    timeout_seconds: float
    admin_password: Optional[str]
    api_key: Optional[str] = None


def load_campaign_config(env: Optional[Mapping[str, str]] = None) -> CampaignConfig:
    """Load :class:`CampaignConfig` from environment variables."""

    env_mapping = os.environ if env is None else env
    api_base_url = env_mapping.get("CAMPAIGN_API_URL", "https://helper-apis-and-scrappers-zrrs.onrender.com")
    return CampaignConfig(
        api_base_url=api_base_url.rstrip("/"),
        timeout_seconds=max(0.1, to_float(env_mapping.get("CAMPAIGN_API_TIMEOUT_SECONDS"), default=10.0)),
        admin_password=env_mapping.get("CAMPAIGN_ADMIN_PASSWORD") or env_mapping.get("PASSWORD") or None,
        api_key=env_mapping.get("TGE_API_KEY") or None,
    )
