"""Core service coordinating payment initialization, verification and webhooks."""
from __future__ import annotations

import hashlib
import json
import logging
import secrets
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

from ..entitlements.catalog import compute_expiry
from ..entitlements.models import AccessStatus, BillingCycle, SubscriptionRecord, SubscriptionStatus
from ..errors import (
    ConflictError,
    PaymentInitError,
    ServiceError,
    StoreError,
    ValidationError,
    VerificationFailed,
    VerificationPending,
)
from .config import PaymentConfig
from .models import (
    PaymentCustomer,
    PaymentInitialization,
    ProviderTransaction,
    VerificationResult,
    WebhookEvent,
    WebhookEventType,
)
from .provider import PaymentProviderError
from .signature import verify_webhook_signature

logger = logging.getLogger("billing")


class PaymentProvider(Protocol):
    """External payment processor integration."""

    name: str

    def create_payment(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        """Create a hosted checkout and return the provider's JSON envelope."""

    def verify_transaction(self, tx_ref: str) -> Mapping[str, Any]:
        """Look up a transaction by reference and return the JSON envelope."""


class BillingNotifier(Protocol):
    """Sends payment related messages to subscribers."""

    def notify_payment_confirmed(
        self,
        subscription: SubscriptionRecord,
        *,
        email: str,
        name: Optional[str],
    ) -> None:
        ...

    def notify_subscription_renewed(
        self,
        *,
        email: str,
        name: Optional[str],
        amount: float,
        billing_cycle: Optional[str],
    ) -> None:
        ...


class AccessChecker(Protocol):
    """Access evaluation used by the duplicate monthly subscription guard."""

    def has_access(self, user_id: Optional[str]) -> AccessStatus:
        ...


class BillingRepository(Protocol):
    """Persistence operations required by the billing service."""

    def get_subscription_by_tx_ref(self, tx_ref: str) -> Optional[SubscriptionRecord]:
        ...

    def upsert_subscription(self, subscription: SubscriptionRecord) -> Tuple[SubscriptionRecord, bool]:
        """Insert or update by ``tx_ref``; the flag is ``True`` when a row was inserted."""

    def insert_subscription_if_absent(self, subscription: SubscriptionRecord) -> Optional[SubscriptionRecord]:
        ...

    def update_subscription_status(
        self,
        tx_ref: str,
        *,
        status: str,
        updated_at: datetime,
    ) -> Optional[SubscriptionRecord]:
        ...

    def record_webhook_event(self, event: WebhookEvent) -> bool:
        ...


# ``slots`` support for ``dataclass`` was added in Python 3.10.
_dataclass_kwargs = {"slots": True} if sys.version_info >= (3, 10) else {}


def _default_nonce() -> str:
    return secrets.token_hex(3)


@dataclass(**_dataclass_kwargs)
class BillingService:
    """Drives a payment from hosted checkout to a persisted subscription."""

    repository: BillingRepository
    provider: PaymentProvider
    notifier: BillingNotifier
    access_checker: AccessChecker
    config: PaymentConfig
    clock: Optional[Callable[[], datetime]] = None
    nonce_factory: Callable[[], str] = field(default=_default_nonce)

    def _now(self) -> datetime:
        if self.clock is not None:
            return self.clock()
        return datetime.now(timezone.utc)

    def build_tx_ref(self, user_id: str) -> str:
        millis = int(self._now().timestamp() * 1000)
        return f"{self.config.tx_ref_prefix}_{millis}_{user_id}_{self.nonce_factory()}"

    def initialize_payment(
        self,
        *,
        customer: PaymentCustomer,
        amount: Optional[float],
        billing_cycle: Optional[str],
        currency: Optional[str] = None,
    ) -> PaymentInitialization:
        if amount is None or not billing_cycle:
            raise ValidationError("Missing required fields")
        if amount <= 0:
            raise ValidationError("amount must be greater than zero")

        currency = (currency or "USD").upper()
        if billing_cycle == BillingCycle.MONTHLY.value:
            self._guard_duplicate_monthly(customer.user_id)

        tx_ref = self.build_tx_ref(customer.user_id)
        payload = {
            "tx_ref": tx_ref,
            "amount": amount,
            "currency": currency,
            "redirect_url": self.config.redirect_url,
            "customer": {"email": customer.email or "", "name": customer.name or ""},
            "customizations": {
                "title": self.config.checkout_title,
                "description": f"TGE Campaign Access - {billing_cycle} subscription",
            },
            "payment_options": self.config.payment_options,
            "meta": {
                "user_id": customer.user_id,
                "user_email": customer.email or "",
                "user_name": customer.name or "",
                "billing_cycle": billing_cycle,
                "subscription_type": "tge_access",
            },
        }

        try:
            response = self.provider.create_payment(payload)
        except PaymentProviderError as exc:
            logger.warning("Payment initialization failed", extra={"tx_ref": tx_ref, "error": str(exc)})
            raise PaymentInitError("Payment initialization failed") from exc

        response = _mapping(response)
        data = _mapping(response.get("data"))
        link = data.get("link")
        if response.get("status") != "success" or not link:
            logger.warning(
                "Payment provider rejected initialization",
                extra={"tx_ref": tx_ref, "provider_status": response.get("status")},
            )
            raise PaymentInitError("Payment initialization failed")

        logger.info(
            "Payment initialized",
            extra={"tx_ref": tx_ref, "billing_cycle": billing_cycle, "payment_user_id": customer.user_id},
        )
        return PaymentInitialization(
            tx_ref=tx_ref,
            payment_url=str(link),
            billing_cycle=billing_cycle,
            amount=amount,
            currency=currency,
        )

    def verify_payment(self, tx_ref: Optional[str], *, customer: Optional[PaymentCustomer] = None) -> VerificationResult:
        """Confirm ``tx_ref`` with the provider and persist the subscription.

        Safe to call repeatedly: the row is keyed by ``tx_ref`` and the
        confirmation message only goes out when the row is first inserted.
        """

        if not tx_ref:
            raise ValidationError("Transaction reference required")

        try:
            payload = self.provider.verify_transaction(tx_ref)
        except PaymentProviderError as exc:
            raise VerificationFailed("Payment verification failed") from exc
        if not isinstance(payload, Mapping):
            raise VerificationFailed("Payment verification failed")

        transaction = ProviderTransaction.from_provider_payload(tx_ref, payload)
        if not transaction.is_successful:
            if payload.get("status") == "success" and not isinstance(payload.get("data"), Mapping):
                raise VerificationFailed("Malformed provider response")
            raise VerificationPending("Payment not confirmed yet")
        if transaction.tx_ref != tx_ref:
            raise VerificationFailed("Provider returned a different transaction")

        meta = transaction.meta
        user_id = meta.get("user_id") or meta.get("userId") or (customer.user_id if customer else None)
        if not user_id:
            raise VerificationFailed("Unable to resolve subscriber for transaction")

        existing = self.repository.get_subscription_by_tx_ref(tx_ref)
        billing_cycle = transaction.billing_cycle or (existing.billing_cycle if existing else None)
        if not billing_cycle:
            raise VerificationFailed("Transaction is missing its billing cycle")

        now = self._now()
        started_at = existing.created_at if existing else now
        record = SubscriptionRecord(
            user_id=str(user_id),
            tx_ref=tx_ref,
            amount=transaction.amount,
            currency=transaction.currency,
            billing_cycle=billing_cycle,
            subscription_type=str(meta.get("subscription_type") or "tge_access"),
            status=SubscriptionStatus.ACTIVE.value,
            payment_provider=self.provider.name,
            created_at=started_at,
            updated_at=now,
            expires_at=compute_expiry(billing_cycle, started_at),
        )
        persisted, inserted = self.repository.upsert_subscription(record)

        if inserted:
            email = meta.get("user_email") or transaction.customer_email or (customer.email if customer else None)
            name = meta.get("user_name") or transaction.customer_name or (customer.name if customer else None)
            self._send_confirmation(persisted, email=email, name=name)

        logger.info(
            "Payment verified",
            extra={"tx_ref": tx_ref, "subscription_created": inserted, "billing_cycle": billing_cycle},
        )
        return VerificationResult(subscription=persisted, created=inserted)

    def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> WebhookEvent:
        verify_webhook_signature(raw_body, signature, self.config.webhook_secret)

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            payload = None
        if not isinstance(payload, dict):
            event = WebhookEvent(event_id=f"malformed:{_body_digest(raw_body)}", event_type="")
            logger.warning("Malformed webhook payload ignored", extra={"webhook_event_id": event.event_id})
            return event

        event = _event_from_payload(payload, raw_body)
        event_type = event.known_type
        if event_type is None:
            logger.info("Unhandled webhook event", extra={"webhook_event": event.event_type})
            return event

        try:
            stored = self.repository.record_webhook_event(event)
        except ServiceError:
            logger.exception("Failed to record webhook delivery", extra={"webhook_event_id": event.event_id})
            stored = True
        if not stored:
            logger.info("Duplicate webhook delivery skipped", extra={"webhook_event_id": event.event_id})
            return event

        try:
            if event_type == WebhookEventType.CHARGE_COMPLETED:
                self._handle_charge_completed(event)
            elif event_type == WebhookEventType.SUBSCRIPTION_ACTIVATED:
                self._handle_subscription_activated(event)
            elif event_type == WebhookEventType.SUBSCRIPTION_UPDATED:
                self._handle_subscription_updated(event)
        except Exception:
            # Acknowledge anyway; the provider redelivers on non-2xx.
            logger.exception(
                "Webhook handler failed",
                extra={"webhook_event": event.event_type, "webhook_event_id": event.event_id},
            )
        return event

    def _guard_duplicate_monthly(self, user_id: str) -> None:
        try:
            status = self.access_checker.has_access(user_id)
        except Exception as exc:
            if self.config.strict_monthly_guard:
                raise StoreError("Unable to confirm existing subscriptions") from exc
            logger.warning(
                "Monthly subscription guard skipped",
                exc_info=True,
                extra={"payment_user_id": user_id},
            )
            return
        if status.active_monthly:
            raise ConflictError(
                "You already have an active monthly subscription.",
                code="active_monthly_subscription",
            )

    def _send_confirmation(self, subscription: SubscriptionRecord, *, email: Optional[str], name: Optional[str]) -> None:
        if not email:
            logger.warning("No recipient for payment confirmation", extra={"tx_ref": subscription.tx_ref})
            return
        try:
            self.notifier.notify_payment_confirmed(subscription, email=email, name=name)
        except Exception:
            logger.exception("Failed to send payment confirmation", extra={"tx_ref": subscription.tx_ref})

    def _handle_charge_completed(self, event: WebhookEvent) -> None:
        data = event.data
        tx_ref = data.get("tx_ref")
        if not tx_ref:
            logger.warning("charge.completed without tx_ref", extra={"webhook_event_id": event.event_id})
            return

        updated = self.repository.update_subscription_status(
            str(tx_ref), status=SubscriptionStatus.ACTIVE.value, updated_at=self._now()
        )
        if updated is None:
            logger.info("charge.completed for unknown subscription", extra={"tx_ref": tx_ref})
            return

        customer = _mapping(data.get("customer"))
        meta = _mapping(data.get("meta"))
        email = customer.get("email")
        if not email:
            return
        amount = data.get("amount")
        try:
            self.notifier.notify_subscription_renewed(
                email=str(email),
                name=customer.get("name"),
                amount=float(amount) if isinstance(amount, (int, float)) else updated.amount,
                billing_cycle=meta.get("billing_cycle") or updated.billing_cycle,
            )
        except Exception:
            logger.exception("Failed to send renewal notice", extra={"tx_ref": tx_ref})

    def _handle_subscription_activated(self, event: WebhookEvent) -> None:
        data = event.data
        meta = _mapping(data.get("meta"))
        customer = _mapping(data.get("customer"))
        tx_ref = data.get("tx_ref")
        user_id = meta.get("user_id") or customer.get("id")
        if not tx_ref or not user_id:
            logger.warning(
                "subscription.activated missing tx_ref or subscriber",
                extra={"webhook_event_id": event.event_id},
            )
            return

        billing_cycle = str(meta.get("billing_cycle") or BillingCycle.MONTHLY.value)
        now = self._now()
        amount = data.get("amount")
        record = SubscriptionRecord(
            user_id=str(user_id),
            tx_ref=str(tx_ref),
            amount=float(amount) if isinstance(amount, (int, float)) else 0,
            currency=str(data.get("currency") or "USD"),
            billing_cycle=billing_cycle,
            subscription_type=str(meta.get("subscription_type") or "tge_access"),
            status=SubscriptionStatus.ACTIVE.value,
            payment_provider=self.provider.name,
            created_at=now,
            updated_at=now,
            expires_at=compute_expiry(billing_cycle, now),
        )
        inserted = self.repository.insert_subscription_if_absent(record)
        if inserted is None:
            logger.info("subscription.activated for existing subscription", extra={"tx_ref": tx_ref})

    def _handle_subscription_updated(self, event: WebhookEvent) -> None:
        data = event.data
        tx_ref = data.get("tx_ref")
        status = data.get("status")
        if not tx_ref or not status:
            logger.warning(
                "subscription.updated missing tx_ref or status",
                extra={"webhook_event_id": event.event_id},
            )
            return
        self.repository.update_subscription_status(str(tx_ref), status=str(status), updated_at=self._now())


def _mapping(value: object) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _body_digest(raw_body: bytes) -> str:
    return hashlib.sha256(raw_body).hexdigest()


def _event_from_payload(payload: Dict[str, Any], raw_body: bytes) -> WebhookEvent:
    """Key a delivery by its signed bytes so only exact redeliveries collapse."""

    event_type = str(payload.get("event") or payload.get("event.type") or "")
    data = _mapping(payload.get("data"))
    identity = data.get("id") or data.get("tx_ref")
    digest = _body_digest(raw_body)
    event_id = f"{event_type}:{identity}:{digest}" if identity else f"{event_type}:{digest}"
    return WebhookEvent(event_id=event_id, event_type=event_type, data=data)


__all__ = [
    "AccessChecker",
    "BillingNotifier",
    "BillingRepository",
    "BillingService",
    "PaymentProvider",
]
