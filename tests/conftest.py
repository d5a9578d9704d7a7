"""Shared test fixtures for Tenancy-Engine."""

import os
import pytest
from httpx import ASGITransport, AsyncClient

from tenancy_engine.common.config import TenancySettings
from tenancy_engine.common.database import DatabaseManager
from tenancy_engine.tenants.registry import TenantRegistry


ADMIN_KEY = "test-admin-key"


def make_settings(**overrides) -> TenancySettings:
    defaults = {"admin_key": ADMIN_KEY, "db_url": "sqlite+aiosqlite://"}
    defaults.update(overrides)
    return TenancySettings(**defaults)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def registry(db):
    return TenantRegistry(db, make_settings())


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["TENANCY_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["TENANCY_ADMIN_KEY"] = ADMIN_KEY

    # Clear caches and singletons so new env vars take effect
    from tenancy_engine.common.config import get_settings
    get_settings.cache_clear()

    from tenancy_engine.deps import reset_singletons
    reset_singletons()

    from tenancy_engine.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from tenancy_engine.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"x-admin-key": ADMIN_KEY}
