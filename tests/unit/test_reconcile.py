"""Tests for the registry repair pass — orphans, leaks, pending and drift."""

import typing
from typing import Sequence

from sqlalchemy import update

from tenancy_engine.tenants.models import TenantModel
from tenancy_engine.tenants.registry import TenantRegistry


async def drop_namespace(db, registry, schema_name):
    async with db.get_session() as session:
        await registry.namespaces.drop(await session.connection(), schema_name)


async def create_namespace(db, registry, schema_name):
    async with db.get_session() as session:
        await registry.namespaces.create(await session.connection(), schema_name)


async def namespaces(db, registry):
    async with db.connect() as conn:
        return await registry.namespaces.list_tenant_namespaces(conn)


class TestReconcileReport:
    async def test_clean_registry(self, registry):
        await registry.create("acme-1", "Acme Co")
        report = await registry.reconcile()
        assert report.clean
        assert report.orphaned_rows == []

    async def test_orphaned_row_detected(self, db, registry):
        await registry.create("acme-1", "Acme Co")
        await drop_namespace(db, registry, "tenant_entity_acme_1")
        report = await registry.reconcile()
        assert report.orphaned_rows == ["acme-1"]
        assert not report.clean
        assert report.repaired == []

    async def test_leaked_namespace_detected(self, db, registry):
        await create_namespace(db, registry, "tenant_entity_ghost")
        report = await registry.reconcile()
        assert report.leaked_namespaces == ["tenant_entity_ghost"]
        assert "tenant_entity_ghost" in await namespaces(db, registry)

    async def test_drifted_row_detected(self, db, registry):
        async with db.get_session() as session:
            session.add(TenantModel(
                id="tenant_acme-1",
                entity_id="acme-1",
                entity_name="Acme Co",
                schema_name="tenant_entity_other",
                status="active",
            ))
        report = await registry.reconcile(repair=True)
        assert report.drifted_rows == ["acme-1"]
        assert report.repaired == []

    async def test_stale_pending_detected(self, db, registry):
        async with db.get_session() as session:
            session.add(TenantModel(
                id="tenant_half-1",
                entity_id="half-1",
                entity_name="Half",
                schema_name="tenant_entity_half_1",
                status="pending",
            ))
        report = await registry.reconcile()
        assert report.stale_pending == ["half-1"]


class TestReconcileRepair:
    async def test_repair_reprovisions_orphan(self, db, registry):
        await registry.create("acme-1", "Acme Co")
        await drop_namespace(db, registry, "tenant_entity_acme_1")
        report = await registry.reconcile(repair=True)
        assert report.repaired == ["acme-1"]
        assert "tenant_entity_acme_1" in await namespaces(db, registry)
        assert (await registry.reconcile()).clean

    async def test_repair_finishes_pending(self, db, registry):
        async with db.get_session() as session:
            session.add(TenantModel(
                id="tenant_half-1",
                entity_id="half-1",
                entity_name="Half",
                schema_name="tenant_entity_half_1",
                status="pending",
            ))
        await registry.reconcile(repair=True)
        tenant = await registry.get_by_entity_id("half-1")
        assert tenant.status == "active"
        assert "tenant_entity_half_1" in await namespaces(db, registry)

    async def test_drop_leaked(self, db, registry):
        await registry.create("acme-1", "Acme Co")
        await create_namespace(db, registry, "tenant_entity_ghost")
        report = await registry.reconcile(drop_leaked=True)
        assert report.dropped == ["tenant_entity_ghost"]
        assert await namespaces(db, registry) == {"tenant_entity_acme_1"}


class TestReconcileDrift:
    async def test_drifted_tenant_schemas_are_never_dropped(self, db, registry):
        await registry.create("acme-1", "Acme Co")
        async with db.get_session() as session:
            await session.execute(
                update(TenantModel)
                .where(TenantModel.entity_id == "acme-1")
                .values(schema_name="tenant_entity_acme_legacy")
            )
        await create_namespace(db, registry, "tenant_entity_acme_legacy")

        report = await registry.reconcile(repair=True, drop_leaked=True)

        assert report.drifted_rows == ["acme-1"]
        assert report.leaked_namespaces == []
        assert report.dropped == []
        assert await namespaces(db, registry) == {
            "tenant_entity_acme_1",
            "tenant_entity_acme_legacy",
        }
        assert await registry.get_by_entity_id("acme-1") is not None

    def test_repair_signature_resolves(self):
        hints = typing.get_type_hints(TenantRegistry._repair)
        assert hints["rows"] == Sequence[TenantModel]
