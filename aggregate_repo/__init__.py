"""
Policy-enforcing repositories over SQLAlchemy sessions.

Adds optimistic concurrency checks, soft delete and row-level data
permission filtering on top of an AsyncSession.
"""

__version__ = "0.1.0"
