"""SQLAlchemy model and value types for tenants."""

import enum
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from tenancy_engine.common.models import Base, TimestampMixin


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class TenantStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class TenantModel(Base, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    entity_id: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    entity_name: Mapped[str] = mapped_column(String(255), nullable=False)
    schema_name: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(50), default=TenantStatus.ACTIVE.value, nullable=False
    )


@dataclass(frozen=True)
class Tenant:
    """Snapshot of a registry row, safe to hand out after the session closes."""

    id: str
    entity_id: str
    entity_name: str
    schema_name: str
    status: str
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE.value

    @classmethod
    def from_model(cls, row: TenantModel) -> "Tenant":
        return cls(
            id=row.id,
            entity_id=row.entity_id,
            entity_name=row.entity_name,
            schema_name=row.schema_name,
            status=row.status,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
        )
