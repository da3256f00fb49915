"""Email configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional
import os

from ..app.settings import to_bool, to_float, to_int


@dataclass(frozen=True)
class EmailConfig:
    """Configuration for outbound email delivery."""

    provider_name: str
    from_email: str
    smtp_host: str
    smtp_port: int
    smtp_username: Optional[str]
    smtp_password: Optional[str]
    smtp_use_tls: bool
    smtp_timeout_seconds: float
    app_base_url: str
    brand_name: str

    @property
    def dashboard_url(self) -> str:
        return f"{self.app_base_url}/tge"


def load_email_config(env: Optional[Mapping[str, str]] = None) -> EmailConfig:
    """Load :class:`EmailConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    provider_name = (env_mapping.get("EMAIL_PROVIDER") or "dev").strip().lower() or "dev"
    smtp_username = env_mapping.get("SMTP_USER") or env_mapping.get("EMAIL_USER") or None
    from_email = env_mapping.get("FROM_EMAIL") or smtp_username or "noreply@example.com"

    smtp_host = env_mapping.get("SMTP_HOST", "smtp.gmail.com")
    smtp_port = to_int(env_mapping.get("SMTP_PORT"), default=587)
    smtp_password = env_mapping.get("SMTP_PASS") or env_mapping.get("EMAIL_PASS") or None
    smtp_use_tls = to_bool(env_mapping.get("SMTP_USE_TLS"), default=True)
    smtp_timeout_seconds = max(1.0, to_float(env_mapping.get("SMTP_TIMEOUT_SECONDS"), default=30.0))

    app_base_url = env_mapping.get("APP_BASE_URL", "http://localhost:3000")

    return EmailConfig(
        provider_name=provider_name,
        from_email=from_email,
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_username=smtp_username,
        smtp_password=smtp_password,
        smtp_use_tls=smtp_use_tls,
        smtp_timeout_seconds=smtp_timeout_seconds,
        app_base_url=app_base_url.rstrip("/"),
        brand_name=env_mapping.get("EMAIL_BRAND_NAME", "InferCircle Pro"),
    )
