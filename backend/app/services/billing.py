"""Application wiring for the billing service."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from ..billing import (
    BillingNotifier,
    BillingService,
    FlutterwavePaymentProvider,
    PaymentConfig,
    PaymentProvider,
    SandboxPaymentProvider,
    load_payment_config,
)
from ..billing.repository import PostgresBillingRepository
from ..entitlements.models import SubscriptionRecord
from .entitlements import get_entitlement_service

try:
    from backend.mail import (
        EmailConfig,
        EmailProvider,
        create_email_provider,
        load_email_config,
        render_payment_confirmation,
        render_subscription_renewal,
    )
except ModuleNotFoundError as exc:  # pragma: no cover
    if exc.name != "backend":
        raise
    from ...mail import (  # type: ignore[no-redef]
        EmailConfig,
        EmailProvider,
        create_email_provider,
        load_email_config,
        render_payment_confirmation,
        render_subscription_renewal,
    )


logger = logging.getLogger("billing")


class EmailBillingNotifier(BillingNotifier):
    """Sends payment confirmations and renewal notices through an email provider."""

    def __init__(self, provider: EmailProvider, config: EmailConfig) -> None:
        self._provider = provider
        self._config = config

    def notify_payment_confirmed(
        self,
        subscription: SubscriptionRecord,
        *,
        email: str,
        name: Optional[str],
    ) -> None:
        subject, text_body, html_body = render_payment_confirmation(
            name=name,
            amount=subscription.amount,
            billing_cycle=subscription.billing_cycle,
            dashboard_url=self._config.dashboard_url,
            brand_name=self._config.brand_name,
        )
        self._dispatch(
            "payment_confirmation",
            email,
            subject,
            html_body,
            text_body,
            {"tx_ref": subscription.tx_ref},
        )

    def notify_subscription_renewed(
        self,
        *,
        email: str,
        name: Optional[str],
        amount: float,
        billing_cycle: Optional[str],
    ) -> None:
        subject, text_body, html_body = render_subscription_renewal(
            name=name,
            amount=amount,
            billing_cycle=billing_cycle,
            dashboard_url=self._config.dashboard_url,
            brand_name=self._config.brand_name,
        )
        self._dispatch("subscription_renewal", email, subject, html_body, text_body, {})

    def _dispatch(
        self,
        email_type: str,
        recipient: str,
        subject: str,
        html_body: str,
        text_body: str,
        context: Dict[str, Any],
    ) -> None:
        log_context = {
            **self._provider.describe(),
            **context,
            "email_recipient": recipient,
            "email_type": email_type,
        }
        logger.info(
            "Dispatching %s email",
            email_type,
            extra={**log_context, "email_event": f"{email_type}.dispatch.start"},
        )
        try:
            self._provider.send_email(recipient, subject, html_body, text_body)
        except Exception:
            logger.exception(
                "Failed to send %s email",
                email_type,
                extra={**log_context, "email_event": f"{email_type}.dispatch.error"},
            )
            raise
        logger.info(
            "%s email dispatched",
            email_type,
            extra={**log_context, "email_event": f"{email_type}.dispatch.success"},
        )


def create_payment_provider(config: PaymentConfig) -> PaymentProvider:
    if config.provider_name == "sandbox":
        return SandboxPaymentProvider(checkout_base_url=config.app_base_url)
    if config.provider_name != "flutterwave":
        logger.warning("Unknown PAYMENT_PROVIDER %r, using flutterwave", config.provider_name)
    return FlutterwavePaymentProvider(
        secret_key=config.secret_key,
        base_url=config.api_base_url,
        timeout_seconds=config.timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_payment_config() -> PaymentConfig:
    return load_payment_config()


@lru_cache(maxsize=1)
def get_billing_service() -> BillingService:
    config = get_payment_config()
    email_config = load_email_config()
    return BillingService(
        repository=PostgresBillingRepository(),
        provider=create_payment_provider(config),
        notifier=EmailBillingNotifier(create_email_provider(email_config), email_config),
        access_checker=get_entitlement_service(),
        config=config,
    )


__all__ = [
    "EmailBillingNotifier",
    "create_payment_provider",
    "get_billing_service",
    "get_payment_config",
]
