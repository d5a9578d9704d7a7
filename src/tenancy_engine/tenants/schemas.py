"""Pydantic schemas for tenant endpoints (camelCase on the wire)."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class TenantCreate(BaseModel):
    model_config = {**_CAMEL, "str_strip_whitespace": True}

    entity_id: str = Field(..., min_length=1, max_length=255)
    entity_name: str = Field(..., min_length=1, max_length=255)


class TenantUpdate(BaseModel):
    model_config = {**_CAMEL, "str_strip_whitespace": True}

    entity_name: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[Literal["active", "inactive"]] = None


class TenantResponse(BaseModel):
    model_config = {**_CAMEL, "from_attributes": True}

    id: str
    entity_id: str
    entity_name: str
    schema_name: str
    status: str
    created_at: datetime
    updated_at: datetime


class TenantEnvelope(BaseModel):
    tenant: TenantResponse
    message: str = ""


class TenantListResponse(BaseModel):
    tenants: list[TenantResponse]


class DeletedTenant(BaseModel):
    model_config = {**_CAMEL, "from_attributes": True}

    entity_id: str
    entity_name: str
    schema_name: str


class TenantDeleteResponse(BaseModel):
    model_config = _CAMEL

    message: str
    deleted_tenant: DeletedTenant


class InitResponse(BaseModel):
    success: bool = True
    message: str


class ReconcileRequest(BaseModel):
    model_config = _CAMEL

    repair: bool = False
    drop_leaked: bool = False


class ReconcileResponse(BaseModel):
    model_config = {**_CAMEL, "from_attributes": True}

    clean: bool
    orphaned_rows: list[str]
    leaked_namespaces: list[str]
    stale_pending: list[str]
    drifted_rows: list[str]
    repaired: list[str]
    dropped: list[str]


class TenantContextResponse(BaseModel):
    tenant: Optional[TenantResponse] = None
    namespace: str
