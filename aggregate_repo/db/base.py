from __future__ import annotations

import inspect
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, runtime_checkable

from sqlalchemy import Boolean, DateTime, LargeBinary, MetaData, Uuid, false
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


# Standardized naming convention for alembic-friendly constraints/indexes.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

class Base(DeclarativeBase):
    """Declarative base class with metadata naming conventions."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


@runtime_checkable
class AggregateRoot(Protocol):
    """
    Structural contract for entities managed through a repository.

    `version` is an opaque token owned by the persistence layer; repositories
    only compare it, never assign it.
    """
    id: Any
    version: Optional[bytes]


_MISSING = object()


def supports_soft_delete(entity: Any) -> bool:
    """
    True when the entity exposes the `is_deleted` capability.

    Looked up statically so an expired attribute is never loaded.
    """
    return inspect.getattr_static(entity, "is_deleted", _MISSING) is not _MISSING


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def next_version_token(current: Optional[bytes]) -> bytes:
    """Generate a fresh version token; the previous value is not interpreted."""
    return uuid.uuid4().bytes


class UUIDPkMixin:
    """Mixin that provides a UUID primary key generated on the Python side."""
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )


class VersionMixin:
    """
    Mixin that provides the binary `version` column used for optimistic concurrency.

    The column is registered as the mapper's `version_id_col`, so SQLAlchemy
    assigns a new token on every INSERT/UPDATE and adds `version = :old` to the
    WHERE clause of each UPDATE and DELETE it emits.
    """
    version: Mapped[bytes] = mapped_column(LargeBinary(16), nullable=False)

    @declared_attr.directive
    def __mapper_args__(cls) -> dict[str, Any]:
        return {
            "version_id_col": cls.__table__.c.version,
            "version_id_generator": next_version_token,
        }


class SoftDeleteMixin:
    """Mixin that provides the `is_deleted` soft-delete flag."""
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )


class TimestampMixin:
    """Mixin that provides created_at and updated_at timestamp columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


class TenantMixin:
    """Mixin that provides tenant scoping for row-level permission filters."""
    tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
    )
