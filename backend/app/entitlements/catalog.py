"""Static catalog of the subscription terms offered on the pricing page."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Union

from .models import BillingCycle


@dataclass(frozen=True)
class BillingTerm:
    """Describes a purchasable billing cycle and how long it grants access."""

    cycle: BillingCycle
    display_name: str
    term_days: int
    list_price: int
    currency: str = "USD"

    @property
    def duration(self) -> timedelta:
        return timedelta(days=self.term_days)


TERM_CATALOG: Dict[BillingCycle, BillingTerm] = {
    BillingCycle.MONTHLY: BillingTerm(
        cycle=BillingCycle.MONTHLY,
        display_name="Monthly",
        term_days=30,
        list_price=199,
    ),
    BillingCycle.SIX_MONTHS: BillingTerm(
        cycle=BillingCycle.SIX_MONTHS,
        display_name="6 Months",
        term_days=183,
        list_price=1000,
    ),
}


def get_billing_term(cycle: Union[BillingCycle, str, None]) -> BillingTerm:
    """Return the term for ``cycle``.

    Anything other than ``monthly`` is billed as the six month term, which
    mirrors how payments in the wild only ever carry the two advertised cycles.
    """

    if cycle == BillingCycle.MONTHLY or cycle == BillingCycle.MONTHLY.value:
        return TERM_CATALOG[BillingCycle.MONTHLY]
    return TERM_CATALOG[BillingCycle.SIX_MONTHS]


def compute_expiry(cycle: Union[BillingCycle, str, None], start: datetime) -> datetime:
    return start + get_billing_term(cycle).duration


__all__ = ["BillingTerm", "TERM_CATALOG", "compute_expiry", "get_billing_term"]
