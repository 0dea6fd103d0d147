"""
Database package initializer exposing the declarative base, aggregate-root
mixins, configuration and engine/session management helpers.
"""

from .base import (
    AggregateRoot,
    Base,
    SoftDeleteMixin,
    TenantMixin,
    TimestampMixin,
    UUIDPkMixin,
    VersionMixin,
    supports_soft_delete,
)
from .config import get_settings, Settings
from .session import (
    commit_session,
    create_session_maker,
    get_async_session,
    unit_of_work,
)

__all__ = [
    "AggregateRoot",
    "Base",
    "SoftDeleteMixin",
    "supports_soft_delete",
    "TenantMixin",
    "TimestampMixin",
    "UUIDPkMixin",
    "VersionMixin",
    "Settings",
    "get_settings",
    "commit_session",
    "create_session_maker",
    "get_async_session",
    "unit_of_work",
]
