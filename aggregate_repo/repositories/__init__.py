"""
Repository layer for data access.

Repositories wrap an AsyncSession (one unit of work) and add optimistic
concurrency checks, soft delete and data permission filtering on top of it.
"""

from .base import BaseRepository
from .keyed import KeyedRepository
from .query import RepositoryQuery
from .tenant import TenantRepository

__all__ = ["BaseRepository", "KeyedRepository", "RepositoryQuery", "TenantRepository"]
