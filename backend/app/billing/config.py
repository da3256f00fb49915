"""Payment provider configuration helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..settings import to_bool, to_float, to_int


@dataclass(frozen=True)
class PaymentConfig:
    """Configuration for hosted checkout and verification."""

    provider_name: str
    secret_key: Optional[str]
    webhook_secret: Optional[str]
    api_base_url: str
    timeout_seconds: float
    app_base_url: str
    tx_ref_prefix: str
    strict_monthly_guard: bool
    poll_interval_seconds: float
    poll_max_attempts: int
    checkout_title: str
    payment_options: str

    @property
    def redirect_url(self) -> str:
        return f"{self.app_base_url}/payment/success"


def load_payment_config(env: Optional[Mapping[str, str]] = None) -> PaymentConfig:
    """Load :class:`PaymentConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    provider_name = (env_mapping.get("PAYMENT_PROVIDER") or "flutterwave").strip().lower() or "flutterwave"
    api_base_url = env_mapping.get("FLUTTERWAVE_BASE_URL", "https://api.flutterwave.com/v3")
    app_base_url = env_mapping.get("APP_BASE_URL", "http://localhost:3000")

    return PaymentConfig(
        provider_name=provider_name,
        secret_key=env_mapping.get("FLUTTERWAVE_SECRET_KEY") or None,
        webhook_secret=env_mapping.get("FLUTTERWAVE_WEBHOOK_SECRET") or None,
        api_base_url=api_base_url.rstrip("/"),
        timeout_seconds=max(0.1, to_float(env_mapping.get("PAYMENT_TIMEOUT_SECONDS"), default=10.0)),
        app_base_url=app_base_url.rstrip("/"),
        tx_ref_prefix=env_mapping.get("PAYMENT_TX_PREFIX", "TGE"),
        strict_monthly_guard=to_bool(env_mapping.get("PAYMENT_STRICT_MONTHLY_GUARD"), default=False),
        poll_interval_seconds=max(0.0, to_float(env_mapping.get("PAYMENT_POLL_INTERVAL_SECONDS"), default=2.0)),
        poll_max_attempts=max(1, to_int(env_mapping.get("PAYMENT_POLL_MAX_ATTEMPTS"), default=10)),
        checkout_title=env_mapping.get("PAYMENT_CHECKOUT_TITLE", "InferCircle Pro Subscription"),
        payment_options=env_mapping.get("PAYMENT_OPTIONS", "card,googlepay"),
    )


__all__ = ["PaymentConfig", "load_payment_config"]
