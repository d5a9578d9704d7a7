"""create tenants table

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("entity_id", sa.String(255), nullable=False),
        sa.Column("entity_name", sa.String(255), nullable=False),
        sa.Column("schema_name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_tenants_entity_id", "tenants", ["entity_id"], unique=True)
    op.create_index("ix_tenants_schema_name", "tenants", ["schema_name"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_tenants_schema_name", table_name="tenants")
    op.drop_index("ix_tenants_entity_id", table_name="tenants")
    op.drop_table("tenants")
