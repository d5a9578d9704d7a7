"""Tenant registry — provisions, resolves and tears down tenant namespaces.

Every registry operation runs in its own unit of work against the shared
namespace and hands back ``Tenant`` snapshots. Request handlers that need to
work inside a tenant namespace go through ``bind()``, which ties the search
path to one exclusively held connection for the lifetime of the block.
"""

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncGenerator, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession

from tenancy_engine.common.config import TenancySettings, get_settings
from tenancy_engine.common.database import DatabaseManager
from tenancy_engine.common.exceptions import InvalidStatusError, TenantProvisioningError
from tenancy_engine.common.logging import get_logger
from tenancy_engine.common.models import utcnow
from tenancy_engine.tenants.models import Tenant, TenantModel, TenantStatus
from tenancy_engine.tenants.namespaces import Namespaces, namespaces_for
from tenancy_engine.tenants.naming import schema_name_for, tenant_id_for, validate_schema_name

logger = get_logger("tenants.registry")

_SETTABLE_STATUSES = {TenantStatus.ACTIVE.value, TenantStatus.INACTIVE.value}


@dataclass
class ReconcileReport:
    """Differences between registry rows and the namespaces that exist."""

    orphaned_rows: list[str] = field(default_factory=list)
    leaked_namespaces: list[str] = field(default_factory=list)
    stale_pending: list[str] = field(default_factory=list)
    drifted_rows: list[str] = field(default_factory=list)
    repaired: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not (
            self.orphaned_rows or self.leaked_namespaces
            or self.stale_pending or self.drifted_rows
        )


class TenantRegistry:
    """Maps external entity ids to provisioned tenant namespaces."""

    def __init__(
        self,
        db: DatabaseManager,
        settings: TenancySettings | None = None,
        namespaces: Namespaces | None = None,
    ):
        self._db = db
        self._settings = settings or get_settings()
        self._namespaces = namespaces
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def namespaces(self) -> Namespaces:
        if self._namespaces is None:
            self._namespaces = namespaces_for(self._db.url)
        return self._namespaces

    @property
    def shared_schema(self) -> str:
        return self._settings.shared_schema

    def _lock_for(self, entity_id: str) -> asyncio.Lock:
        key = "*" if self.namespaces.serialize_all else entity_id
        return self._locks[key]

    # ── Lifecycle ──

    async def initialize(self) -> None:
        """Create the registry table and its indexes if missing."""
        namespaces = self.namespaces
        await self._db.create_all()
        logger.info("Tenant registry initialized (%s)", type(namespaces).__name__)

    async def create(self, entity_id: str, entity_name: str) -> Tenant:
        """Provision a tenant, or return the existing one unchanged."""
        tenant, _ = await self.ensure(entity_id, entity_name)
        return tenant

    async def ensure(self, entity_id: str, entity_name: str) -> tuple[Tenant, bool]:
        """Like ``create`` but also reports whether a tenant was provisioned."""
        schema_name = schema_name_for(entity_id)
        tenant_id = tenant_id_for(entity_id)

        async with self._lock_for(entity_id):
            if self.namespaces.transactional_ddl:
                return await self._provision_atomic(tenant_id, entity_id, entity_name, schema_name)
            return await self._provision_staged(tenant_id, entity_id, entity_name, schema_name)

    async def _provision_atomic(
        self, tenant_id: str, entity_id: str, entity_name: str, schema_name: str
    ) -> tuple[Tenant, bool]:
        # Namespace and row commit together or not at all.
        async with self._db.get_session() as session:
            conn = await session.connection()
            await self.namespaces.lock(conn, entity_id)
            existing = await self._get_by_entity_id(session, entity_id)
            if existing is not None:
                return Tenant.from_model(existing), False

            await self.namespaces.create(conn, schema_name)
            row = TenantModel(
                id=tenant_id,
                entity_id=entity_id,
                entity_name=entity_name,
                schema_name=schema_name,
                status=TenantStatus.ACTIVE.value,
            )
            session.add(row)
            await session.flush()
            tenant = Tenant.from_model(row)

        logger.info("Provisioned tenant %s in schema %s", entity_id, schema_name)
        return tenant, True

    async def _provision_staged(
        self, tenant_id: str, entity_id: str, entity_name: str, schema_name: str
    ) -> tuple[Tenant, bool]:
        # Without transactional DDL the row is recorded as pending first, so a
        # crash mid-provisioning leaves a pending row for reconcile() to finish.
        async with self._db.get_session() as session:
            existing = await self._get_by_entity_id(session, entity_id)
            if existing is not None:
                return Tenant.from_model(existing), False
            session.add(TenantModel(
                id=tenant_id,
                entity_id=entity_id,
                entity_name=entity_name,
                schema_name=schema_name,
                status=TenantStatus.PENDING.value,
            ))

        try:
            async with self._db.get_session() as session:
                await self.namespaces.create(await session.connection(), schema_name)
                row = await self._get_by_entity_id(session, entity_id)
                row.status = TenantStatus.ACTIVE.value
                row.updated_at = utcnow()
                await session.flush()
                tenant = Tenant.from_model(row)
        except SQLAlchemyError as exc:
            logger.exception("Provisioning schema %s failed, removing pending row", schema_name)
            async with self._db.get_session() as session:
                await session.execute(
                    delete(TenantModel).where(TenantModel.entity_id == entity_id)
                )
            raise TenantProvisioningError(
                f"Could not provision schema {schema_name}: {exc}"
            ) from exc

        logger.info("Provisioned tenant %s in schema %s", entity_id, schema_name)
        return tenant, True

    async def delete(self, entity_id: str) -> bool:
        """Drop the tenant's namespace with everything in it, then its row."""
        async with self._lock_for(entity_id):
            async with self._db.get_session() as session:
                conn = await session.connection()
                await self.namespaces.lock(conn, entity_id)
                row = await self._get_by_entity_id(session, entity_id)
                if row is None:
                    return False
                schema_name = row.schema_name
                await self.namespaces.drop(conn, schema_name)
                await session.delete(row)
                await session.flush()

        logger.warning("Deleted tenant %s and dropped schema %s", entity_id, schema_name)
        return True

    # ── Lookup ──

    async def _get_by_entity_id(
        self, session: AsyncSession, entity_id: str
    ) -> TenantModel | None:
        result = await session.execute(
            select(TenantModel).where(TenantModel.entity_id == entity_id)
        )
        return result.scalar_one_or_none()

    async def get_by_entity_id(self, entity_id: str) -> Tenant | None:
        async with self._db.get_session() as session:
            row = await self._get_by_entity_id(session, entity_id)
            return Tenant.from_model(row) if row else None

    async def get_by_schema_name(self, schema_name: str) -> Tenant | None:
        async with self._db.get_session() as session:
            result = await session.execute(
                select(TenantModel).where(TenantModel.schema_name == schema_name)
            )
            row = result.scalar_one_or_none()
            return Tenant.from_model(row) if row else None

    async def resolve_active(self, entity_id: str) -> Tenant | None:
        """Return the tenant only if requests may be bound to it."""
        tenant = await self.get_by_entity_id(entity_id)
        if tenant is None or not tenant.is_active:
            return None
        return tenant

    async def list(self) -> list[Tenant]:
        async with self._db.get_session() as session:
            result = await session.execute(
                select(TenantModel).order_by(TenantModel.created_at.desc())
            )
            return [Tenant.from_model(row) for row in result.scalars().all()]

    # ── Mutation ──

    async def update_status(self, entity_id: str, status: str) -> Tenant | None:
        return await self.update(entity_id, status=status)

    async def update(
        self,
        entity_id: str,
        entity_name: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Tenant | None:
        """Rename and/or change the status of a tenant. Never touches its namespace."""
        if status is not None:
            status = getattr(status, "value", status)
            if status not in _SETTABLE_STATUSES:
                raise InvalidStatusError(
                    f"Status must be one of {sorted(_SETTABLE_STATUSES)}, got {status!r}"
                )

        async with self._db.get_session() as session:
            row = await self._get_by_entity_id(session, entity_id)
            if row is None:
                return None
            if entity_name is None and status is None:
                return Tenant.from_model(row)
            if entity_name is not None:
                row.entity_name = entity_name
            if status is not None:
                row.status = status
            row.updated_at = utcnow()
            await session.flush()
            tenant = Tenant.from_model(row)

        logger.info("Updated tenant %s (status=%s)", entity_id, tenant.status)
        return tenant

    # ── Schema context ──

    async def enter_schema(self, conn: AsyncConnection, schema_name: str) -> None:
        """Resolve unqualified names in ``schema_name`` first, then the shared schema."""
        await self.namespaces.enter(conn, validate_schema_name(schema_name), self.shared_schema)

    async def exit_schema(self, conn: AsyncConnection) -> None:
        """Resolve unqualified names in the shared schema only."""
        await self.namespaces.exit(conn, self.shared_schema)

    async def current_namespace(self, conn: AsyncConnection) -> str:
        return await self.namespaces.current(conn)

    @asynccontextmanager
    async def bind(self, schema_name: str | None) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session on one exclusive connection scoped to ``schema_name``.

        The connection goes back to the pool only after the search path has
        been reset (or the transaction that set it rolled back), so no other
        request can observe this binding. ``None`` yields a session on the
        shared schema.
        """
        async with self._db.connect() as conn:
            await conn.begin()
            try:
                if schema_name is not None:
                    await self.enter_schema(conn, schema_name)
                async with self._db.session_for(conn) as session:
                    yield session
                    await session.flush()
                if schema_name is not None:
                    await self.exit_schema(conn)
                await conn.commit()
            except Exception:
                # Rolling back also discards the search_path set above.
                await conn.rollback()
                raise
            finally:
                self.namespaces.forget(conn)

    # ── Repair ──

    async def reconcile(self, repair: bool = False, drop_leaked: bool = False) -> ReconcileReport:
        """Cross-check registry rows against existing namespaces.

        With ``repair`` orphaned rows get a fresh empty namespace and stale
        pending rows are activated. Leaked namespaces are dropped only with
        ``drop_leaked``. Drifted rows are reported and left alone.
        """
        report = ReconcileReport()
        async with self._locks["*"]:
            async with self._db.get_session() as session:
                conn = await session.connection()
                result = await session.execute(select(TenantModel))
                rows = list(result.scalars().all())
                existing = await self.namespaces.list_tenant_namespaces(conn)

                known = set()
                for row in rows:
                    expected = schema_name_for(row.entity_id)
                    if row.schema_name != expected:
                        # The stored and the derived name both belong to this row.
                        known.update((row.schema_name, expected))
                        report.drifted_rows.append(row.entity_id)
                        continue
                    known.add(row.schema_name)
                    if row.schema_name not in existing:
                        if row.status == TenantStatus.PENDING.value:
                            report.stale_pending.append(row.entity_id)
                        else:
                            report.orphaned_rows.append(row.entity_id)
                    elif row.status == TenantStatus.PENDING.value:
                        report.stale_pending.append(row.entity_id)
                report.leaked_namespaces = sorted(existing - known)

            if repair:
                await self._repair(report, rows)
            if drop_leaked:
                for schema_name in report.leaked_namespaces:
                    async with self._db.get_session() as session:
                        await self.namespaces.drop(await session.connection(), schema_name)
                    report.dropped.append(schema_name)
                    logger.warning("Dropped leaked schema %s", schema_name)

        if not report.clean:
            logger.warning(
                "Reconcile found %d orphaned, %d leaked, %d pending, %d drifted",
                len(report.orphaned_rows), len(report.leaked_namespaces),
                len(report.stale_pending), len(report.drifted_rows),
            )
        return report

    async def _repair(self, report: ReconcileReport, rows: Sequence[TenantModel]) -> None:
        by_entity = {row.entity_id: row for row in rows}
        for entity_id in report.orphaned_rows + report.stale_pending:
            schema_name = by_entity[entity_id].schema_name
            async with self._db.get_session() as session:
                await self.namespaces.create(await session.connection(), schema_name)
                row = await self._get_by_entity_id(session, entity_id)
                if row is not None and row.status == TenantStatus.PENDING.value:
                    row.status = TenantStatus.ACTIVE.value
                    row.updated_at = utcnow()
            report.repaired.append(entity_id)
            logger.info("Repaired tenant %s (schema %s)", entity_id, schema_name)
