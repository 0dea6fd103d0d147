from __future__ import annotations

from typing import Any, Optional


class RepositoryError(Exception):
    """
    Base class for errors raised by the repository layer.

    Each subclass carries a machine-readable `code` and the HTTP status the
    web integration maps it to.
    """

    code: str = "repository_error"
    http_status: int = 500

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ConcurrencyError(RepositoryError):
    """The stored row changed since the caller read it (version token mismatch)."""

    code = "concurrency_conflict"
    http_status = 409

    def __init__(
        self,
        message: str = "The data has been modified by someone else; refresh and retry.",
        *,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message, details=details)


class EntityNotFoundError(RepositoryError):
    """No stored row exists for the requested key."""

    code = "entity_not_found"
    http_status = 404

    def __init__(self, entity_type: str, key: Any) -> None:
        super().__init__(
            f"{entity_type} '{key}' not found",
            details={"entity_type": entity_type, "key": str(key)},
        )
        self.entity_type = entity_type
        self.key = key


class AppSessionUnavailableError(RepositoryError):
    """No caller session is bound to the current context."""

    code = "app_session_unavailable"
    http_status = 401

    def __init__(self, message: str = "No application session is bound to the current context.") -> None:
        super().__init__(message)
