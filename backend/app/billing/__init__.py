"""Billing domain package: hosted checkout, verification and webhooks."""

from .config import PaymentConfig, load_payment_config
from .models import (
    PaymentCustomer,
    PaymentInitialization,
    ProviderTransaction,
    VerificationResult,
    WebhookEvent,
    WebhookEventType,
)
from .polling import PaymentVerificationPoller, PollOutcome, PollResult
from .provider import FlutterwavePaymentProvider, PaymentProviderError, SandboxPaymentProvider
from .service import (
    AccessChecker,
    BillingNotifier,
    BillingRepository,
    BillingService,
    PaymentProvider,
)
from .signature import SIGNATURE_HEADER, sign_payload, verify_webhook_signature

__all__ = [
    "AccessChecker",
    "BillingNotifier",
    "BillingRepository",
    "BillingService",
    "FlutterwavePaymentProvider",
    "PaymentConfig",
    "PaymentCustomer",
    "PaymentInitialization",
    "PaymentProvider",
    "PaymentProviderError",
    "PaymentVerificationPoller",
    "PollOutcome",
    "PollResult",
    "ProviderTransaction",
    "SIGNATURE_HEADER",
    "SandboxPaymentProvider",
    "VerificationResult",
    "WebhookEvent",
    "WebhookEventType",
    "load_payment_config",
    "sign_payload",
    "verify_webhook_signature",
]
