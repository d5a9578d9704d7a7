"""Dialect-specific namespace DDL and search-path handling.

PostgreSQL is the production backend: one schema per tenant, selected per
connection through ``search_path``. SQLite is supported for development and
tests with an in-memory database only: a tenant namespace is an attached
in-memory database and, since SQLite has no search path, the bound namespace is only tracked on the connection.

Schema names are validated against the tenant allow-list and always quoted by
the dialect's identifier preparer before they reach a statement.
"""

from sqlalchemy import inspect, text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.schema import CreateSchema, DropSchema

from tenancy_engine.tenants.naming import is_tenant_schema, validate_schema_name

BOUND_SCHEMA_KEY = "tenancy_bound_schema"


def _quote(conn: AsyncConnection, name: str) -> str:
    return conn.dialect.identifier_preparer.quote_identifier(name)


class Namespaces:
    """Base strategy; subclasses implement the DDL for one dialect."""

    # Whether schema DDL participates in the surrounding transaction.
    transactional_ddl = True
    # Whether all provisioning in this process must run one at a time.
    serialize_all = False

    async def list_tenant_namespaces(self, conn: AsyncConnection) -> set[str]:
        names = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_schema_names())
        return {name for name in names if is_tenant_schema(name)}

    async def exists(self, conn: AsyncConnection, schema_name: str) -> bool:
        return schema_name in await self.list_tenant_namespaces(conn)

    async def create(self, conn: AsyncConnection, schema_name: str) -> None:
        raise NotImplementedError

    async def drop(self, conn: AsyncConnection, schema_name: str) -> None:
        raise NotImplementedError

    async def enter(self, conn: AsyncConnection, schema_name: str, shared_schema: str) -> None:
        raise NotImplementedError

    async def exit(self, conn: AsyncConnection, shared_schema: str) -> None:
        raise NotImplementedError

    async def current(self, conn: AsyncConnection) -> str:
        raise NotImplementedError

    async def lock(self, conn: AsyncConnection, key: str) -> None:
        """Cross-process lock held until the current transaction ends."""

    def forget(self, conn: AsyncConnection) -> None:
        conn.info.pop(BOUND_SCHEMA_KEY, None)


class PostgresNamespaces(Namespaces):
    transactional_ddl = True

    async def create(self, conn: AsyncConnection, schema_name: str) -> None:
        validate_schema_name(schema_name)
        await conn.execute(CreateSchema(schema_name, if_not_exists=True))

    async def drop(self, conn: AsyncConnection, schema_name: str) -> None:
        validate_schema_name(schema_name)
        await conn.execute(DropSchema(schema_name, cascade=True, if_exists=True))

    async def enter(self, conn: AsyncConnection, schema_name: str, shared_schema: str) -> None:
        validate_schema_name(schema_name)
        await conn.execute(
            text(f"SET search_path TO {_quote(conn, schema_name)}, {_quote(conn, shared_schema)}")
        )
        conn.info[BOUND_SCHEMA_KEY] = schema_name

    async def exit(self, conn: AsyncConnection, shared_schema: str) -> None:
        await conn.execute(text(f"SET search_path TO {_quote(conn, shared_schema)}"))
        self.forget(conn)

    async def current(self, conn: AsyncConnection) -> str:
        result = await conn.execute(text("SELECT current_schema()"))
        return result.scalar_one()

    async def lock(self, conn: AsyncConnection, key: str) -> None:
        await conn.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key}
        )


class SQLiteNamespaces(Namespaces):
    transactional_ddl = False
    serialize_all = True

    async def create(self, conn: AsyncConnection, schema_name: str) -> None:
        validate_schema_name(schema_name)
        if await self.exists(conn, schema_name):
            return
        await conn.execute(
            text(f"ATTACH DATABASE ':memory:' AS {_quote(conn, schema_name)}")
        )

    async def drop(self, conn: AsyncConnection, schema_name: str) -> None:
        validate_schema_name(schema_name)
        if not await self.exists(conn, schema_name):
            return
        await conn.execute(text(f"DETACH DATABASE {_quote(conn, schema_name)}"))

    async def enter(self, conn: AsyncConnection, schema_name: str, shared_schema: str) -> None:
        validate_schema_name(schema_name)
        conn.info[BOUND_SCHEMA_KEY] = schema_name

    async def exit(self, conn: AsyncConnection, shared_schema: str) -> None:
        self.forget(conn)

    async def current(self, conn: AsyncConnection) -> str:
        return conn.info.get(BOUND_SCHEMA_KEY, "main")


def namespaces_for(url: URL) -> Namespaces:
    dialect_name = url.get_backend_name()
    if dialect_name == "postgresql":
        return PostgresNamespaces()
    if dialect_name == "sqlite":
        # Attached in-memory databases live only on the connection that made
        # them, so SQLite is limited to a single in-memory database.
        if url.database not in (None, "", ":memory:"):
            raise ValueError(
                f"SQLite tenant namespaces need an in-memory database, got {url.database!r}"
            )
        return SQLiteNamespaces()
    raise ValueError(f"Unsupported database dialect for tenant namespaces: {dialect_name}")
