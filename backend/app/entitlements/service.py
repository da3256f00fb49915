"""Service deciding who has access and managing invite codes."""
from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol, Sequence

from ..errors import (
    AuthorizationError,
    ConflictError,
    GenerationError,
    NotFoundError,
    ValidationError,
)
from .config import EntitlementConfig
from .models import (
    AccessStatus,
    InviteAccessGrant,
    InviteCode,
    InviteRedemption,
    SubscriptionRecord,
)

logger = logging.getLogger("entitlements")

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


class SubscriptionRepository(Protocol):
    """Read access to subscription records."""

    def list_active_subscriptions(self, user_id: str, *, at: datetime) -> Sequence[SubscriptionRecord]:
        """Return subscriptions with status ``active`` and ``expires_at >= at``."""


class InviteRepository(Protocol):
    """Persistence operations for invite codes and the grants they produce."""

    def get_active_invite_access(self, user_id: str, *, at: datetime) -> Optional[InviteAccessGrant]:
        ...

    def invite_code_exists(self, code: str) -> bool:
        ...

    def create_invite_code(self, invite: InviteCode) -> Optional[InviteCode]:
        """Insert ``invite``; return ``None`` when the code is already taken."""

    def list_invite_codes(self) -> Sequence[InviteCode]:
        ...

    def get_invite_code(self, code: str) -> Optional[InviteCode]:
        ...

    def redeem_invite_code(
        self,
        invite_code_id: str,
        *,
        user_id: str,
        redeemed_at: datetime,
        access_expires_at: datetime,
    ) -> Optional[InviteAccessGrant]:
        """Mark the code used and create the grant in one transaction.

        Returns ``None`` when the code was redeemed concurrently.
        """


def generate_invite_code_candidate(length: int = 8) -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


class EntitlementService:
    """Evaluates access grants and handles the invite code lifecycle."""

    def __init__(
        self,
        subscription_repository: SubscriptionRepository,
        invite_repository: InviteRepository,
        config: Optional[EntitlementConfig] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        code_factory: Optional[Callable[[int], str]] = None,
    ) -> None:
        self._subscription_repository = subscription_repository
        self._invite_repository = invite_repository
        self._config = config or EntitlementConfig()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._code_factory = code_factory or generate_invite_code_candidate

    @property
    def config(self) -> EntitlementConfig:
        return self._config

    def is_admin(self, email: Optional[str]) -> bool:
        return self._config.is_admin(email)

    def has_access(self, user_id: Optional[str]) -> AccessStatus:
        """Evaluate every grant the user holds at the current instant.

        Zero matching rows is a normal outcome. Store failures propagate as
        :class:`~backend.app.errors.StoreError` from the repositories.
        """

        if not user_id or not str(user_id).strip():
            raise ValidationError("User ID is required")

        user_id = str(user_id).strip()
        now = self._clock()
        subscriptions = tuple(
            record
            for record in self._subscription_repository.list_active_subscriptions(user_id, at=now)
            if record.grants_access_at(now)
        )
        grant = self._invite_repository.get_active_invite_access(user_id, at=now)
        if grant is not None and not grant.grants_access_at(now):
            grant = None

        active_monthly = any(record.is_monthly for record in subscriptions)
        active_six_months = any(not record.is_monthly for record in subscriptions)
        return AccessStatus(
            user_id=user_id,
            has_access=bool(subscriptions) or grant is not None,
            active_monthly=active_monthly,
            active_six_months=active_six_months,
            has_invite_access=grant is not None,
            subscriptions=subscriptions,
            invite_access=grant,
            evaluated_at=now,
        )

    def generate_invite_code(self, *, requester_id: str, requester_email: Optional[str]) -> InviteCode:
        """Issue a fresh invite code on behalf of an administrator."""

        if not self.is_admin(requester_email):
            raise AuthorizationError("Forbidden - Admin access required")

        attempts = self._config.invite_code_max_attempts
        for attempt in range(1, attempts + 1):
            candidate = self._code_factory(self._config.invite_code_length).upper()
            if self._invite_repository.invite_code_exists(candidate):
                logger.debug("Invite code collision attempt=%s", attempt)
                continue

            now = self._clock()
            created = self._invite_repository.create_invite_code(
                InviteCode(
                    code=candidate,
                    created_by=requester_id,
                    expires_at=now + timedelta(days=self._config.invite_code_ttl_days),
                    is_active=True,
                    created_at=now,
                )
            )
            if created is None:
                logger.debug("Invite code insert lost a race attempt=%s", attempt)
                continue

            logger.info(
                "Invite code generated",
                extra={"invite_code_id": created.id, "invite_created_by": requester_id},
            )
            return created

        raise GenerationError("Failed to generate unique invite code")

    def list_invite_codes(self, *, requester_email: Optional[str]) -> Sequence[InviteCode]:
        if not self.is_admin(requester_email):
            raise AuthorizationError("Forbidden - Admin access required")
        return self._invite_repository.list_invite_codes()

    def redeem_invite_code(self, *, user_id: str, code: Optional[str]) -> InviteRedemption:
        """Redeem ``code`` for ``user_id``.

        An existing unexpired grant is reported before any problem with the
        code itself.
        """

        if not code or not code.strip():
            raise ValidationError("Invite code is required")
        if not user_id:
            raise ValidationError("User ID is required")

        normalized = code.strip().upper()
        now = self._clock()

        existing = self._invite_repository.get_active_invite_access(user_id, at=now)
        if existing is not None and existing.grants_access_at(now):
            raise ConflictError("You already have active invite access", code="invite_access_active")

        invite = self._invite_repository.get_invite_code(normalized)
        if invite is None or not invite.is_active:
            raise NotFoundError("Invalid or expired invite code", code="invite_not_found")
        if invite.is_redeemed:
            raise ConflictError("This invite code has already been used", code="invite_used")
        if invite.is_expired_at(now):
            raise ConflictError("This invite code has expired", code="invite_expired")

        grant = self._invite_repository.redeem_invite_code(
            str(invite.id),
            user_id=user_id,
            redeemed_at=now,
            access_expires_at=now + timedelta(days=self._config.invite_access_ttl_days),
        )
        if grant is None:
            raise ConflictError("This invite code has already been used", code="invite_used")

        logger.info(
            "Invite code redeemed",
            extra={"invite_code_id": invite.id, "invite_user_id": user_id},
        )
        return InviteRedemption(code=normalized, user_id=user_id, grant=grant)


__all__ = [
    "EntitlementService",
    "INVITE_CODE_ALPHABET",
    "InviteRepository",
    "SubscriptionRepository",
    "generate_invite_code_candidate",
]
