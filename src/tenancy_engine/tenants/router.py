"""Tenant admin API router — requires the shared admin key."""

from contextlib import contextmanager
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from tenancy_engine.common.exceptions import (
    InvalidEntityIdError,
    InvalidStatusError,
    TenancyError,
)
from tenancy_engine.common.logging import get_logger
from tenancy_engine.common.security import require_admin_key
from tenancy_engine.tenants.schemas import (
    DeletedTenant,
    InitResponse,
    ReconcileRequest,
    ReconcileResponse,
    TenantCreate,
    TenantDeleteResponse,
    TenantEnvelope,
    TenantListResponse,
    TenantResponse,
    TenantUpdate,
)

logger = get_logger("tenants.router")

router = APIRouter(prefix="/tenants", tags=["tenants"])


def _get_registry():
    from tenancy_engine.deps import get_tenant_registry
    return get_tenant_registry()


@contextmanager
def _reporting():
    """Turn registry failures into structured HTTP errors."""
    try:
        yield
    except (InvalidEntityIdError, InvalidStatusError) as e:
        raise HTTPException(status_code=400, detail=e.message)
    except TenancyError as e:
        logger.exception("Tenant operation failed")
        raise HTTPException(status_code=500, detail=e.message)
    except SQLAlchemyError as e:
        logger.exception("Database error in tenant operation")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/init", response_model=InitResponse)
async def init_tenants(_=Depends(require_admin_key)):
    with _reporting():
        await _get_registry().initialize()
    return InitResponse(message="Tenant system initialized successfully")


@router.get("", response_model=TenantListResponse)
async def list_tenants(_=Depends(require_admin_key)):
    with _reporting():
        tenants = await _get_registry().list()
    return TenantListResponse(
        tenants=[TenantResponse.model_validate(t) for t in tenants]
    )


@router.post("", response_model=TenantEnvelope, status_code=201)
async def create_tenant(body: TenantCreate, _=Depends(require_admin_key)):
    with _reporting():
        tenant, created = await _get_registry().ensure(body.entity_id, body.entity_name)
    envelope = TenantEnvelope(
        tenant=TenantResponse.model_validate(tenant),
        message="Tenant created successfully" if created else "Tenant already exists",
    )
    if not created:
        return JSONResponse(status_code=200, content=envelope.model_dump(mode="json", by_alias=True))
    return envelope


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_tenants(
    body: Optional[ReconcileRequest] = None, _=Depends(require_admin_key)
):
    body = body or ReconcileRequest()
    with _reporting():
        report = await _get_registry().reconcile(
            repair=body.repair, drop_leaked=body.drop_leaked
        )
    return ReconcileResponse.model_validate(report)


@router.get("/{entity_id}", response_model=TenantEnvelope)
async def get_tenant(entity_id: str, _=Depends(require_admin_key)):
    with _reporting():
        tenant = await _get_registry().get_by_entity_id(entity_id)
    if tenant is None:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return TenantEnvelope(tenant=TenantResponse.model_validate(tenant))


@router.patch("/{entity_id}", response_model=TenantEnvelope)
async def update_tenant(
    entity_id: str, body: TenantUpdate, _=Depends(require_admin_key)
):
    with _reporting():
        tenant = await _get_registry().update(
            entity_id, entity_name=body.entity_name, status=body.status
        )
    if tenant is None:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return TenantEnvelope(tenant=TenantResponse.model_validate(tenant))


@router.delete("/{entity_id}", response_model=TenantDeleteResponse)
async def delete_tenant(entity_id: str, _=Depends(require_admin_key)):
    registry = _get_registry()
    with _reporting():
        tenant = await registry.get_by_entity_id(entity_id)
        deleted = tenant is not None and await registry.delete(entity_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return TenantDeleteResponse(
        message="Tenant deleted successfully",
        deleted_tenant=DeletedTenant.model_validate(tenant),
    )
