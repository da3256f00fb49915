"""PostgreSQL persistence for subscriptions, invite codes and invite grants."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from ..db import PostgresRepository
from .models import InviteAccessGrant, InviteCode, SubscriptionRecord, SubscriptionStatus


def _optional_str(value: object) -> Optional[str]:
    return None if value is None else str(value)


def row_to_subscription(row: dict) -> SubscriptionRecord:
    return SubscriptionRecord(
        id=_optional_str(row.get("id")),
        user_id=str(row["user_id"]),
        tx_ref=row["tx_ref"],
        amount=float(row.get("amount") or 0),
        currency=row.get("currency") or "USD",
        billing_cycle=row["billing_cycle"],
        subscription_type=row.get("subscription_type") or "tge_access",
        status=row["status"],
        payment_provider=row.get("payment_provider") or "flutterwave",
        created_at=row["created_at"],
        updated_at=row.get("updated_at"),
        expires_at=row["expires_at"],
    )


def _row_to_invite_code(row: dict) -> InviteCode:
    return InviteCode(
        id=_optional_str(row.get("id")),
        code=row["code"],
        created_by=str(row["created_by"]),
        used_by=_optional_str(row.get("used_by")),
        used_at=row.get("used_at"),
        expires_at=row["expires_at"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )


def _row_to_grant(row: dict) -> InviteAccessGrant:
    return InviteAccessGrant(
        id=_optional_str(row.get("id")),
        user_id=str(row["user_id"]),
        invite_code_id=_optional_str(row.get("invite_code_id")),
        expires_at=row["expires_at"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
    )


class PostgresEntitlementRepository(PostgresRepository):
    """Implements both the subscription and invite repository protocols."""

    def list_active_subscriptions(self, user_id: str, *, at: datetime) -> List[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM subscriptions
                WHERE user_id = %s
                  AND status = %s
                  AND expires_at >= %s
                ORDER BY expires_at DESC
                """,
                (user_id, SubscriptionStatus.ACTIVE.value, at),
            )
            rows = cursor.fetchall()
        return [row_to_subscription(row) for row in rows]

    def get_active_invite_access(self, user_id: str, *, at: datetime) -> Optional[InviteAccessGrant]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM user_invite_access
                WHERE user_id = %s
                  AND is_active = TRUE
                  AND expires_at >= %s
                ORDER BY expires_at DESC
                LIMIT 1
                """,
                (user_id, at),
            )
            row = cursor.fetchone()
        return _row_to_grant(row) if row else None

    def invite_code_exists(self, code: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute("SELECT 1 FROM invite_codes WHERE code = %s", (code,))
            return cursor.fetchone() is not None

    def create_invite_code(self, invite: InviteCode) -> Optional[InviteCode]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO invite_codes (code, created_by, expires_at, is_active, created_at)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (code) DO NOTHING
                RETURNING *
                """,
                (
                    invite.code,
                    invite.created_by,
                    invite.expires_at,
                    invite.is_active,
                    invite.created_at,
                ),
            )
            row = cursor.fetchone()
        return _row_to_invite_code(row) if row else None

    def list_invite_codes(self) -> List[InviteCode]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM invite_codes ORDER BY created_at DESC")
            rows = cursor.fetchall()
        return [_row_to_invite_code(row) for row in rows]

    def get_invite_code(self, code: str) -> Optional[InviteCode]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM invite_codes WHERE code = %s", (code,))
            row = cursor.fetchone()
        return _row_to_invite_code(row) if row else None

    def redeem_invite_code(
        self,
        invite_code_id: str,
        *,
        user_id: str,
        redeemed_at: datetime,
        access_expires_at: datetime,
    ) -> Optional[InviteAccessGrant]:
        """Compare-and-set on ``used_by IS NULL`` followed by the grant insert."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE invite_codes
                SET used_by = %s,
                    used_at = %s
                WHERE id = %s
                  AND used_by IS NULL
                  AND is_active = TRUE
                  AND expires_at >= %s
                RETURNING id
                """,
                (user_id, redeemed_at, invite_code_id, redeemed_at),
            )
            if cursor.fetchone() is None:
                return None

            cursor.execute(
                """
                INSERT INTO user_invite_access (user_id, invite_code_id, expires_at, is_active, created_at)
                VALUES (%s, %s, %s, TRUE, %s)
                RETURNING *
                """,
                (user_id, invite_code_id, access_expires_at, redeemed_at),
            )
            row = cursor.fetchone()
        return _row_to_grant(row)


__all__ = ["PostgresEntitlementRepository", "row_to_subscription"]
