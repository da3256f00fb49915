"""Configuration for invite codes and the administrator allow-list."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import FrozenSet, Mapping, Optional

from ..settings import to_int, to_lowercase_set


@dataclass(frozen=True)
class EntitlementConfig:
    """Tunables for invite issuance and redemption."""

    admin_emails: FrozenSet[str] = field(default_factory=frozenset)
    invite_code_length: int = 8
    invite_code_ttl_days: int = 30
    invite_access_ttl_days: int = 3
    invite_code_max_attempts: int = 10

    def is_admin(self, email: Optional[str]) -> bool:
        if not email:
            return False
        return email.strip().lower() in self.admin_emails


def load_entitlement_config(env: Optional[Mapping[str, str]] = None) -> EntitlementConfig:
    """Load :class:`EntitlementConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    return EntitlementConfig(
        admin_emails=to_lowercase_set(env_mapping.get("ADMIN_EMAILS")),
        invite_code_length=max(1, to_int(env_mapping.get("INVITE_CODE_LENGTH"), default=8)),
        invite_code_ttl_days=max(1, to_int(env_mapping.get("INVITE_CODE_TTL_DAYS"), default=30)),
        invite_access_ttl_days=max(1, to_int(env_mapping.get("INVITE_ACCESS_TTL_DAYS"), default=3)),
        invite_code_max_attempts=max(1, to_int(env_mapping.get("INVITE_CODE_MAX_ATTEMPTS"), default=10)),
    )


__all__ = ["EntitlementConfig", "load_entitlement_config"]
