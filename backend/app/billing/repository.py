"""Persistence layer for subscriptions written by the payment flow."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Tuple

import psycopg2.extras

from ..db import PostgresRepository
from ..entitlements.models import SubscriptionRecord
from ..entitlements.repository import row_to_subscription
from .models import WebhookEvent

_SUBSCRIPTION_COLUMNS = """
    user_id,
    tx_ref,
    amount,
    currency,
    billing_cycle,
    subscription_type,
    status,
    payment_provider,
    created_at,
    updated_at,
    expires_at
"""


def _subscription_params(subscription: SubscriptionRecord) -> tuple:
    return (
        subscription.user_id,
        subscription.tx_ref,
        subscription.amount,
        subscription.currency,
        subscription.billing_cycle,
        subscription.subscription_type,
        subscription.status,
        subscription.payment_provider,
        subscription.created_at,
        subscription.updated_at,
        subscription.expires_at,
    )


class PostgresBillingRepository(PostgresRepository):
    """Concrete repository persisting subscriptions and webhook deliveries."""

    def get_subscription_by_tx_ref(self, tx_ref: str) -> Optional[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM subscriptions WHERE tx_ref = %s", (tx_ref,))
            row = cursor.fetchone()
        return row_to_subscription(row) if row else None

    def upsert_subscription(self, subscription: SubscriptionRecord) -> Tuple[SubscriptionRecord, bool]:
        """Insert or update by ``tx_ref``.

        ``xmax = 0`` only holds for a freshly inserted tuple, so the second
        element tells concurrent verifications apart.
        """

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                INSERT INTO subscriptions ({_SUBSCRIPTION_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (tx_ref) DO UPDATE SET
                    user_id = EXCLUDED.user_id,
                    amount = EXCLUDED.amount,
                    currency = EXCLUDED.currency,
                    billing_cycle = EXCLUDED.billing_cycle,
                    subscription_type = EXCLUDED.subscription_type,
                    status = EXCLUDED.status,
                    payment_provider = EXCLUDED.payment_provider,
                    updated_at = EXCLUDED.updated_at,
                    expires_at = EXCLUDED.expires_at
                RETURNING *, (xmax = 0) AS inserted
                """,
                _subscription_params(subscription),
            )
            row = cursor.fetchone()
        return row_to_subscription(row), bool(row["inserted"])

    def insert_subscription_if_absent(self, subscription: SubscriptionRecord) -> Optional[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                INSERT INTO subscriptions ({_SUBSCRIPTION_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (tx_ref) DO NOTHING
                RETURNING *
                """,
                _subscription_params(subscription),
            )
            row = cursor.fetchone()
        return row_to_subscription(row) if row else None

    def update_subscription_status(
        self,
        tx_ref: str,
        *,
        status: str,
        updated_at: datetime,
    ) -> Optional[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE subscriptions
                SET status = %s,
                    updated_at = %s
                WHERE tx_ref = %s
                RETURNING *
                """,
                (status, updated_at, tx_ref),
            )
            row = cursor.fetchone()
        return row_to_subscription(row) if row else None

    def record_webhook_event(self, event: WebhookEvent) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO billing_webhook_events (
                    event_id,
                    event_type,
                    payload,
                    received_at
                )
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (event_id) DO NOTHING
                """,
                (
                    event.event_id,
                    event.event_type,
                    psycopg2.extras.Json(event.data),
                    event.received_at,
                ),
            )
            return cursor.rowcount > 0


__all__ = ["PostgresBillingRepository"]
