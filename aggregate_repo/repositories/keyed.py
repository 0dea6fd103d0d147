from __future__ import annotations

import logging
from uuid import UUID

from aggregate_repo.core.errors import EntityNotFoundError
from .base import BaseRepository, RootT

logger = logging.getLogger(__name__)


class KeyedRepository(BaseRepository[RootT, UUID]):
    """
    Repository for UUID-keyed aggregate roots with mandatory optimistic concurrency.

    An update of an entity the session does not track yet (for example one
    rebuilt from a request payload) is checked against a no-tracking
    snapshot of the stored row before it is attached. Entities already
    tracked were validated when they were loaded, so they skip the check.

    The check is advisory: a writer committing between the check and our
    commit is caught by the versioned UPDATE, surfaced by `commit()`.
    """

    async def update(self, entity: RootT) -> None:
        """
        Raises:
            EntityNotFoundError: no stored row has the entity's key.
            ConcurrencyError: the entity's version token is empty or stale.
        """
        if not self.is_tracked(entity):
            stored = await (
                self.get_all_as_no_tracking()
                .where(self.model.id == entity.id)
                .one_or_none()
            )
            if stored is None:
                raise EntityNotFoundError(self.model.__name__, entity.id)
            logger.debug("Validating version of cold update for %s %s", self.model.__name__, entity.id)
            self.validate_version(entity, stored)
        await super().update(entity)
