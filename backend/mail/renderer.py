"""Rendering helpers for transactional email."""
from __future__ import annotations

import html
import re
from pathlib import Path
from typing import Any, Dict, Tuple

_TEMPLATE_PATH = Path(__file__).resolve().parent / "templates"
_PLACEHOLDER_PATTERN = re.compile(r"{{\s*(\w+)\s*}}")

_BILLING_CYCLE_LABELS = {"monthly": "Monthly", "six_months": "6 Months"}


def _load_template(template: str) -> str:
    path = _TEMPLATE_PATH / template
    return path.read_text(encoding="utf-8")


def _render_template(template: str, context: Dict[str, Any], *, escape: bool = False) -> str:
    source = _load_template(template)

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        value = context.get(key, "")
        text = "" if value is None else str(value)
        return html.escape(text) if escape else text

    return _PLACEHOLDER_PATTERN.sub(_replace, source)


def _render_subject_body(base_template: str, context: Dict[str, Any]) -> Tuple[str, str, str]:
    subject = _render_template(f"{base_template}_subject.txt.j2", context)
    text_body = _render_template(f"{base_template}_body.txt.j2", context)
    html_body = _render_template(f"{base_template}_body.html.j2", context, escape=True)
    return subject.strip(), text_body.strip(), html_body.strip()


def _format_amount(amount: Any) -> str:
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)


def _payment_context(
    *,
    name: str | None,
    amount: Any,
    billing_cycle: str | None,
    dashboard_url: str,
    brand_name: str,
) -> Dict[str, Any]:
    return {
        "name": name or "there",
        "amount": _format_amount(amount),
        "billing_cycle": _BILLING_CYCLE_LABELS.get(billing_cycle or "", billing_cycle or ""),
        "dashboard_url": dashboard_url,
        "brand_name": brand_name,
    }


def render_payment_confirmation(**kwargs: Any) -> Tuple[str, str, str]:
    """Return ``(subject, text_body, html_body)`` for a first successful payment."""

    return _render_subject_body("payment_confirmation", _payment_context(**kwargs))


def render_subscription_renewal(**kwargs: Any) -> Tuple[str, str, str]:
    return _render_subject_body("subscription_renewal", _payment_context(**kwargs))
