from __future__ import annotations

from typing import Any, Generic, List, Optional, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import MultipleResultsFound
from sqlalchemy.ext.asyncio import AsyncSession

RootT = TypeVar("RootT")


class RepositoryQuery(Generic[RootT]):
    """
    Composable, lazily evaluated query over one entity type.

    Composition methods return new queries and never touch the database;
    only `all`, `first`, `one_or_none` and `count` execute.

    With `tracking=False` the statement runs in a short-lived side session
    joined to the owning session's connection (so it sees the same
    transaction) and every loaded instance is expunged from it. The owning
    session's identity map is neither consulted nor populated, so the
    results are snapshots of the stored rows.
    """

    def __init__(
        self,
        session: AsyncSession,
        statement: Select,
        *,
        tracking: bool = True,
        row_limit: Optional[int] = None,
    ) -> None:
        self._session = session
        self._statement = statement
        self._tracking = tracking
        self._row_limit = row_limit

    @property
    def statement(self) -> Select:
        """The underlying SQLAlchemy Select."""
        return self._statement

    @property
    def tracking(self) -> bool:
        return self._tracking

    def _derive(self, statement: Select, **overrides: Any) -> "RepositoryQuery[RootT]":
        options = {"tracking": self._tracking, "row_limit": self._row_limit}
        options.update(overrides)
        return RepositoryQuery(self._session, statement, **options)

    def where(self, *criteria: Any) -> "RepositoryQuery[RootT]":
        return self._derive(self._statement.where(*criteria))

    def filter_by(self, **kwargs: Any) -> "RepositoryQuery[RootT]":
        return self._derive(self._statement.filter_by(**kwargs))

    def order_by(self, *clauses: Any) -> "RepositoryQuery[RootT]":
        return self._derive(self._statement.order_by(*clauses))

    def limit(self, limit: Optional[int]) -> "RepositoryQuery[RootT]":
        return self._derive(self._statement.limit(limit), row_limit=limit)

    def offset(self, offset: Optional[int]) -> "RepositoryQuery[RootT]":
        return self._derive(self._statement.offset(offset))

    def _capped(self, rows: int) -> Select:
        # A caller limit at or below `rows` already bounds the result.
        if self._row_limit is not None and self._row_limit <= rows:
            return self._statement
        return self._statement.limit(rows)

    async def _fetch(self, statement: Select) -> List[RootT]:
        if self._tracking:
            result = await self._session.scalars(statement)
            return list(result)

        connection = await self._session.connection()
        async with AsyncSession(
            bind=connection, expire_on_commit=False, autoflush=False
        ) as snapshot_session:
            result = await snapshot_session.scalars(statement)
            rows = list(result)
            snapshot_session.expunge_all()
        return rows

    async def all(self) -> List[RootT]:
        """Execute and return every matching entity."""
        return await self._fetch(self._statement)

    async def first(self) -> Optional[RootT]:
        """Return the first entity or None, fetching at most one row."""
        rows = await self._fetch(self._capped(1))
        return rows[0] if rows else None

    async def one_or_none(self) -> Optional[RootT]:
        """
        Execute and return the single matching entity or None.

        Raises:
            sqlalchemy.exc.MultipleResultsFound: more than one row matched.
        """
        rows = await self._fetch(self._capped(2))
        if len(rows) > 1:
            raise MultipleResultsFound("Multiple rows were found when one or none was required")
        return rows[0] if rows else None

    async def count(self) -> int:
        """Return the number of matching rows."""
        stmt = select(func.count()).select_from(self._statement.order_by(None).subquery())
        result = await self._session.execute(stmt)
        return int(result.scalar_one())
