#!/usr/bin/env python3
"""Seed the registry with demo marketplace tenants.

Usage:
    python -m scripts.seed_tenants
    # or from project root:
    python scripts/seed_tenants.py
"""

import asyncio
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from tenancy_engine.common.config import get_settings
from tenancy_engine.common.database import DatabaseManager
from tenancy_engine.tenants.registry import TenantRegistry

DEMO_TENANTS = [
    ("acme-1", "Acme Co"),
    ("globex-2", "Globex Corporation"),
    ("initech-3", "Initech"),
]


async def seed_tenants() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()

    registry = TenantRegistry(db, settings)
    await registry.initialize()

    for entity_id, entity_name in DEMO_TENANTS:
        tenant, created = await registry.ensure(entity_id, entity_name)
        if not created:
            print(f"  [skip] {entity_id} ({tenant.entity_name}) already exists")
            continue
        print(f"  [ok]   {entity_id} -> {tenant.schema_name}")

    await db.close()


if __name__ == "__main__":
    asyncio.run(seed_tenants())
