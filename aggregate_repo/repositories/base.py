from __future__ import annotations

import logging
from typing import ClassVar, Generic, Iterable, Optional, TypeVar, Union

from sqlalchemy import ColumnElement, inspect, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified

from aggregate_repo.core.app_session import AppSession, AppSessionSource, resolve_app_session
from aggregate_repo.core.errors import ConcurrencyError
from aggregate_repo.db.base import AggregateRoot, supports_soft_delete
from aggregate_repo.db.session import commit_session
from .query import RepositoryQuery

logger = logging.getLogger(__name__)

RootT = TypeVar("RootT", bound=AggregateRoot)
KeyT = TypeVar("KeyT")


def _lacks_key(state) -> bool:
    return any(part is None for part in state.mapper.primary_key_from_instance(state.obj()))


class BaseRepository(Generic[RootT, KeyT]):
    """
    Generic repository over one aggregate-root type.

    Layers three policies on top of the session: version-token validation
    (enforced on update by KeyedRepository), soft delete, and row-level data
    permission filtering driven by the caller's AppSession.

    Subclasses set `model` and may override `get_data_permissions`.

    Note:
      A repository is bound to exactly one AsyncSession; both belong to a
      single unit of work and must not be shared between concurrent tasks.
    """

    model: ClassVar[type]

    def __init__(self, session: AsyncSession, app_session: AppSessionSource) -> None:
        self.session = session
        self._app_session_source = app_session
        self._app_session: Optional[AppSession] = None

    @property
    def app_session(self) -> AppSession:
        """The caller session, resolved on first use and cached for this repository."""
        if self._app_session is None:
            self._app_session = resolve_app_session(self._app_session_source)
        return self._app_session

    async def commit(self) -> None:
        """
        Commit current transaction.

        Raises:
            ConcurrencyError: a versioned UPDATE/DELETE matched no row.
        """
        await commit_session(self.session)

    # Create

    async def add(self, entity: RootT) -> None:
        """Register a new entity; it is inserted on the next flush/commit."""
        self.session.add(entity)

    async def add_entity(self, entity: RootT) -> RootT:
        """Register a new entity, commit immediately and return it with generated key/version."""
        self.session.add(entity)
        await self.commit()
        return entity

    # Update

    async def update(self, entity: RootT) -> None:
        """Attach the entity if needed and mark it modified. No version check here."""
        self.attach_if_not(entity)
        self._mark_modified(entity)

    def validate_version(self, new_entity: RootT, old_entity: RootT) -> None:
        """
        Compare the caller's version token with the stored one.

        Raises:
            ConcurrencyError: the incoming token is empty or differs in any byte or in length.
        """
        if not new_entity.version:
            raise ConcurrencyError(details={"reason": "missing_version"})
        if bytes(new_entity.version) != bytes(old_entity.version or b""):
            raise ConcurrencyError(details={"reason": "version_mismatch"})

    def _mark_modified(self, entity: RootT) -> None:
        # Every loaded column except keys and the version token is written back.
        state = inspect(entity)
        mapper = state.mapper
        skipped = {mapper.get_property_by_column(col).key for col in mapper.primary_key}
        if mapper.version_id_col is not None:
            skipped.add(mapper.get_property_by_column(mapper.version_id_col).key)
        for attr in mapper.column_attrs:
            if attr.key in skipped or attr.key not in state.dict:
                continue
            flag_modified(entity, attr.key)

    # Tracking

    def is_tracked(self, entity: RootT) -> bool:
        """Return True if the entity is in this repository's session."""
        return entity in self.session

    def attach_if_not(self, entity: RootT) -> bool:
        """
        Attach the entity unless the session already tracks it.

        A transient instance that carries its primary key is treated as an
        existing row: its current attribute values become the loaded state.

        Returns:
            bool: True when an attach happened, False if it was already tracked.
        Raises:
            ValueError: a transient instance has no primary key.
        """
        if self.is_tracked(entity):
            return False
        state = inspect(entity)
        if state.transient:
            if _lacks_key(state):
                raise ValueError(
                    f"Cannot attach {type(entity).__name__} without a primary key; use add() for new entities."
                )
            make_transient_to_detached(entity)
        self.session.add(entity)
        logger.debug("Attached %s %s", type(entity).__name__, entity.id)
        return True

    # Delete

    async def delete(self, entity: RootT, ignore_soft_delete: bool = False) -> None:
        """
        Delete one entity.

        Soft-delete capable entities get `is_deleted = True` and stay as rows,
        unless `ignore_soft_delete` is set, which forces physical removal.
        A soft delete of a new instance that has no key yet only sets the flag.

        Raises:
            ValueError: physical removal of a transient instance without a key.
        """
        state = inspect(entity)
        if supports_soft_delete(entity) and not ignore_soft_delete:
            if not (state.transient and _lacks_key(state)):
                self.attach_if_not(entity)
            entity.is_deleted = True
            return

        if state.pending:
            self.session.expunge(entity)
            return
        self.attach_if_not(entity)
        await self.session.delete(entity)

    async def delete_many(
        self,
        entities: Union[Iterable[RootT], RepositoryQuery[RootT], None],
        ignore_soft_delete: bool = False,
    ) -> int:
        """
        Delete every entity of a collection or query.

        The input is materialized before the first delete. None or an empty
        input is a no-op. A failure part-way leaves earlier deletes applied
        to the session; rollback is up to the unit of work.

        Returns:
            int: number of entities processed.
        """
        if entities is None:
            return 0
        if isinstance(entities, RepositoryQuery):
            batch = await entities.all()
        else:
            batch = list(entities)
        if not batch:
            return 0
        for entity in batch:
            await self.delete(entity, ignore_soft_delete)
        return len(batch)

    async def delete_where(
        self, predicate: ColumnElement[bool], ignore_soft_delete: bool = False
    ) -> int:
        """
        Delete every row matching `predicate`.

        Matches are loaded and deleted one by one so soft delete applies per
        entity (O(n) reads, no set-based DELETE). The predicate runs against
        all rows, NOT the data-permission filtered view.

        Returns:
            int: number of entities processed.
        """
        count = await self.delete_many(self.get_all().where(predicate), ignore_soft_delete)
        logger.debug("delete_where on %s processed %d row(s)", self.model.__name__, count)
        return count

    # Read

    async def find(self, id: KeyT) -> Optional[RootT]:
        """Look up by primary key, returning the tracked instance when already loaded."""
        return await self.session.get(self.model, id)

    def get_all(self) -> RepositoryQuery[RootT]:
        """All rows, tracked, unfiltered."""
        return RepositoryQuery(self.session, select(self.model))

    def get_all_as_no_tracking(self) -> RepositoryQuery[RootT]:
        """All rows as detached snapshots that never enter this session."""
        return RepositoryQuery(self.session, select(self.model), tracking=False)

    def get_all_filter_data_permissions(self) -> RepositoryQuery[RootT]:
        """All rows for admins, otherwise only rows accepted by `get_data_permissions`."""
        if self.app_session.is_admin:
            return self.get_all()
        return self.get_all().where(self.get_data_permissions())

    def get_data_permissions(self) -> ColumnElement[bool]:
        """Row-level visibility predicate for non-admin callers; accepts every row by default."""
        return true()
