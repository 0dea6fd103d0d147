from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from aggregate_repo.core.app_session import AppSession
from aggregate_repo.core.settings import get_app_settings


# PUBLIC_INTERFACE
def create_access_token(app_session: AppSession, expires_minutes: Optional[int] = None) -> str:
    """
    Encode a caller session as a signed access token.

    The claims mirror what AppSession.from_claims reads back: `sub`,
    `tenant_id`, `roles` and `is_superadmin`.
    """
    if app_session.user_id is None:
        raise ValueError("An access token needs a user id")
    settings = get_app_settings()
    now = datetime.now(tz=timezone.utc)
    claims: Dict[str, Any] = {
        "sub": str(app_session.user_id),
        "tenant_id": str(app_session.tenant_id) if app_session.tenant_id else None,
        "roles": list(app_session.roles),
        "is_superadmin": app_session.is_admin,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "type": "access",
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


# PUBLIC_INTERFACE
def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT; raises JWTError if invalid/expired."""
    settings = get_app_settings()
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


# PUBLIC_INTERFACE
def app_session_from_token(token: str) -> AppSession:
    """
    Rebuild the caller session carried by an access token.

    Raises:
        JWTError: bad signature, expired or malformed token.
        ValueError: the token is not an access token or its ids are not UUIDs.
    """
    claims = decode_token(token)
    if claims.get("type") != "access" or not claims.get("sub"):
        raise ValueError("Not an access token")
    return AppSession.from_claims(claims, admin_role=get_app_settings().ADMIN_ROLE)
