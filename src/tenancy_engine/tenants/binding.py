"""Per-request tenant schema binding for tenant-scoped routes.

The tenant's entity id arrives in the ``x-tenant-id`` header or, failing
that, the ``tenant_id`` cookie. Binding is best-effort: a missing, unknown,
inactive or pending tenant, or a failed lookup, leaves the request on the
shared schema without raising.
"""

from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy_engine.common.config import get_settings
from tenancy_engine.common.exceptions import TenancyError
from tenancy_engine.common.logging import get_logger
from tenancy_engine.tenants.models import Tenant
from tenancy_engine.tenants.schemas import TenantContextResponse, TenantResponse

logger = get_logger("tenants.binding")


@dataclass
class TenantScope:
    """Resolved tenant (if any) and the session bound to its schema."""
    session: AsyncSession
    tenant: Optional[Tenant] = None


def requested_entity_id(request: Request) -> Optional[str]:
    settings = get_settings()
    return (
        request.headers.get(settings.tenant_header)
        or request.cookies.get(settings.tenant_cookie)
        or None
    )


async def tenant_scope(request: Request) -> AsyncGenerator[TenantScope, None]:
    """FastAPI dependency holding one schema-bound connection for the request."""
    from tenancy_engine.deps import get_tenant_registry

    registry = get_tenant_registry()
    entity_id = requested_entity_id(request)
    tenant = None
    if entity_id:
        try:
            tenant = await registry.resolve_active(entity_id)
        except (TenancyError, SQLAlchemyError):
            logger.exception(
                "Tenant lookup failed, using shared schema",
                extra={"entity_id": entity_id},
            )
        if tenant is None:
            logger.debug("No active tenant for %r, using shared schema", entity_id)

    request.state.tenant = tenant
    async with registry.bind(tenant.schema_name if tenant else None) as session:
        yield TenantScope(session=session, tenant=tenant)


router = APIRouter(tags=["tenant-context"])


@router.get("/tenant-context", response_model=TenantContextResponse)
async def tenant_context(scope: TenantScope = Depends(tenant_scope)):
    from tenancy_engine.deps import get_tenant_registry

    conn = await scope.session.connection()
    namespace = await get_tenant_registry().current_namespace(conn)
    return TenantContextResponse(
        tenant=TenantResponse.model_validate(scope.tenant) if scope.tenant else None,
        namespace=namespace,
    )
