"""Tenancy-Engine: schema-per-tenant registry for a shared PostgreSQL database."""

from tenancy_engine.client import TenancyClient
from tenancy_engine.tenants.naming import schema_name_for, tenant_id_for, validate_entity_id

__all__ = [
    "TenancyClient",
    "schema_name_for",
    "tenant_id_for",
    "validate_entity_id",
]
__version__ = "0.1.0"
