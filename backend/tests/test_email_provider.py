import pathlib
import sys
from datetime import datetime, timedelta, timezone

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app.entitlements import SubscriptionRecord  # noqa: E402
from backend.app.services.billing import EmailBillingNotifier  # noqa: E402
from backend.mail import (  # noqa: E402
    DevPrintProvider,
    EmailProvider,
    SMTPProvider,
    create_email_provider,
    load_email_config,
    render_payment_confirmation,
    render_subscription_renewal,
)


class _RecordingProvider(EmailProvider):
    name = "recording"

    def __init__(self) -> None:
        super().__init__(from_email="noreply@example.com")
        self.sent = []

    def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> None:  # type: ignore[override]
        self.sent.append((to, subject, html_body, text_body))


class _FailingProvider(EmailProvider):
    name = "failing"

    def __init__(self, exc: Exception) -> None:
        super().__init__(from_email="noreply@example.com")
        self._exc = exc

    def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> None:  # type: ignore[override]
        raise self._exc


def _subscription() -> SubscriptionRecord:
    now = datetime(2025, 3, 1, tzinfo=timezone.utc)
    return SubscriptionRecord(
        user_id="user-1",
        tx_ref="TGE_1",
        amount=199.0,
        billing_cycle="monthly",
        created_at=now,
        expires_at=now + timedelta(days=30),
    )


def test_default_provider_is_dev_print():
    config = load_email_config(env={})
    provider = create_email_provider(config)
    assert isinstance(provider, DevPrintProvider)
    assert provider.from_email == "noreply@example.com"


def test_unknown_provider_falls_back_to_dev():
    provider = create_email_provider(load_email_config(env={"EMAIL_PROVIDER": "carrier-pigeon"}))

    assert isinstance(provider, DevPrintProvider)


def test_smtp_provider_configuration():
    config = load_email_config(
        env={
            "EMAIL_PROVIDER": "smtp",
            "SMTP_HOST": "mail.example.com",
            "SMTP_PORT": "2525",
            "SMTP_USER": "mailer",
            "SMTP_PASS": "secret",
            "FROM_EMAIL": "notifications@example.com",
        }
    )
    provider = create_email_provider(config)
    assert isinstance(provider, SMTPProvider)
    assert provider.host == "mail.example.com"
    assert provider.port == 2525
    assert provider.username == "mailer"
    assert provider.from_email == "notifications@example.com"


def test_legacy_email_credentials_are_accepted():
    config = load_email_config(env={"EMAIL_PROVIDER": "smtp", "EMAIL_USER": "ops@example.com", "EMAIL_PASS": "pw"})

    assert config.smtp_username == "ops@example.com"
    assert config.smtp_password == "pw"
    assert config.from_email == "ops@example.com"
    assert config.smtp_host == "smtp.gmail.com"


def test_payment_confirmation_rendering():
    subject, text_body, html_body = render_payment_confirmation(
        name="<Pat>",
        amount=199.0,
        billing_cycle="six_months",
        dashboard_url="https://app.example.com/tge",
        brand_name="InferCircle Pro",
    )

    assert subject == "Payment Confirmation - InferCircle Pro"
    assert "$199" in text_body
    assert "6 Months" in text_body
    assert "https://app.example.com/tge" in text_body
    assert "&lt;Pat&gt;" in html_body
    assert "<Pat>" not in html_body


def test_renewal_rendering_defaults_greeting():
    subject, text_body, _ = render_subscription_renewal(
        name=None,
        amount=1000,
        billing_cycle="monthly",
        dashboard_url="https://app.example.com/tge",
        brand_name="InferCircle Pro",
    )

    assert subject == "Subscription Renewal - InferCircle Pro"
    assert "there" in text_body


def test_notifier_sends_confirmation_to_recipient():
    provider = _RecordingProvider()
    notifier = EmailBillingNotifier(provider, load_email_config(env={"APP_BASE_URL": "https://app.example.com"}))

    notifier.notify_payment_confirmed(_subscription(), email="payer@example.com", name="Pat")

    to, subject, html_body, text_body = provider.sent[0]
    assert to == "payer@example.com"
    assert subject.startswith("Payment Confirmation")
    assert "https://app.example.com/tge" in text_body


def test_email_send_errors_propagate():
    notifier = EmailBillingNotifier(_FailingProvider(RuntimeError("boom")), load_email_config(env={}))

    with pytest.raises(RuntimeError):
        notifier.notify_subscription_renewed(
            email="user@example.com",
            name="user",
            amount=199,
            billing_cycle="monthly",
        )
