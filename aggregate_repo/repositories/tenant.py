from __future__ import annotations

from sqlalchemy import ColumnElement, false

from .base import RootT
from .keyed import KeyedRepository


class TenantRepository(KeyedRepository[RootT]):
    """
    Keyed repository whose non-admin callers only see rows of their own tenant.

    The model must carry a `tenant_id` column (see TenantMixin). A caller
    without a tenant sees nothing.
    """

    def get_data_permissions(self) -> ColumnElement[bool]:
        tenant_id = self.app_session.tenant_id
        if tenant_id is None:
            return false()
        return self.model.tenant_id == tenant_id
