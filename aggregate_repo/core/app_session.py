from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Optional, Union
from uuid import UUID

from aggregate_repo.core.errors import AppSessionUnavailableError
from aggregate_repo.core.logging import tenant_id_var, user_id_var


@dataclass(frozen=True)
class AppSession:
    """
    Identity of the caller on whose behalf repositories run.

    Read-only for repositories: `is_admin` switches data permission filtering
    off, the identifiers feed the permission predicates of subclasses.
    """

    user_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None
    roles: tuple[str, ...] = field(default_factory=tuple)
    is_admin: bool = False

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any], admin_role: str = "admin") -> "AppSession":
        """
        Build a session from decoded access-token claims.

        Recognised claims: `sub` (user id), `tenant_id`, `roles` and the
        optional `is_superadmin` flag. A caller holding `admin_role` is admin.
        """
        roles = tuple(str(r) for r in (claims.get("roles") or ()))
        return cls(
            user_id=_as_uuid(claims.get("sub")),
            tenant_id=_as_uuid(claims.get("tenant_id")),
            roles=roles,
            is_admin=bool(claims.get("is_superadmin")) or admin_role in roles,
        )


AppSessionProvider = Callable[[], AppSession]
AppSessionSource = Union[AppSession, AppSessionProvider]

app_session_var: ContextVar[Optional[AppSession]] = ContextVar("app_session", default=None)


def _as_uuid(value: Any) -> Optional[UUID]:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


# PUBLIC_INTERFACE
def current_app_session() -> AppSession:
    """
    Provider returning the session bound by `bind_app_session`.

    Raises:
        AppSessionUnavailableError: nothing is bound in the current context.
    """
    app_session = app_session_var.get()
    if app_session is None:
        raise AppSessionUnavailableError()
    return app_session


# PUBLIC_INTERFACE
@contextmanager
def bind_app_session(app_session: AppSession) -> Iterator[AppSession]:
    """
    Bind the caller session to the current context for the duration of the block.

    Also publishes the tenant and user ids to the logging context.
    """
    token = app_session_var.set(app_session)
    token_tenant = tenant_id_var.set(str(app_session.tenant_id) if app_session.tenant_id else None)
    token_user = user_id_var.set(str(app_session.user_id) if app_session.user_id else None)
    try:
        yield app_session
    finally:
        user_id_var.reset(token_user)
        tenant_id_var.reset(token_tenant)
        app_session_var.reset(token)


# PUBLIC_INTERFACE
def resolve_app_session(source: AppSessionSource) -> AppSession:
    """Return `source` itself when it is a session, otherwise call it as a provider."""
    if isinstance(source, AppSession):
        return source
    return source()
