"""Application wiring for the entitlement service."""
from __future__ import annotations

from functools import lru_cache

from ..entitlements import EntitlementConfig, EntitlementService, load_entitlement_config
from ..entitlements.repository import PostgresEntitlementRepository


@lru_cache(maxsize=1)
def get_entitlement_config() -> EntitlementConfig:
    return load_entitlement_config()


@lru_cache(maxsize=1)
def get_entitlement_service() -> EntitlementService:
    repository = PostgresEntitlementRepository()
    return EntitlementService(
        subscription_repository=repository,
        invite_repository=repository,
        config=get_entitlement_config(),
    )


__all__ = ["get_entitlement_config", "get_entitlement_service"]
