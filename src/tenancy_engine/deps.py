"""Dependency injection singletons for Tenancy-Engine."""

from tenancy_engine.common.config import get_settings
from tenancy_engine.common.database import DatabaseManager
from tenancy_engine.tenants.registry import TenantRegistry

_db: DatabaseManager | None = None
_registry: TenantRegistry | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_tenant_registry() -> TenantRegistry:
    global _registry
    if _registry is None:
        _registry = TenantRegistry(get_db(), get_settings())
    return _registry


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _registry
    _db = None
    _registry = None
