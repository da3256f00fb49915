"""Outbound email: configuration, providers and templates."""

from .config import EmailConfig, load_email_config
from .providers import (
    DevPrintProvider,
    EmailProvider,
    SMTPProvider,
    create_email_provider,
)
from .renderer import render_payment_confirmation, render_subscription_renewal

__all__ = [
    "DevPrintProvider",
    "EmailProvider",
    "EmailConfig",
    "SMTPProvider",
    "load_email_config",
    "create_email_provider",
    "render_payment_confirmation",
    "render_subscription_renewal",
]
