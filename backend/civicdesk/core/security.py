"""
Bearer JWT verification + current-user dependency.

In development with DEV_SKIP_AUTH=true:
  - Pass X-Dev-User-ID: <uuid> header to authenticate as that user.
  - If the header is absent, the first active district-magistrate in the DB is
    used as fallback (only in development; production always requires a token).

In production / staging:
  - Bearer token must be a JWT signed with JWT_SECRET whose `sub` claim is the
    user's id. Tokens are issued by the identity provider, never here.
"""
import logging
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.config import get_settings
from civicdesk.core.db import get_db
from civicdesk.engine.scope import Actor
from civicdesk.models.user import Role, User

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)

# ---------------------------------------------------------------------------
# Context variable for dev-mode user injection (set by middleware)
# ---------------------------------------------------------------------------
_dev_user_id: ContextVar[str | None] = ContextVar("_dev_user_id", default=None)


def set_dev_user_id(user_id: str | None) -> None:
    _dev_user_id.set(user_id)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a bearer token.
    Raises HTTPException(401) on any failure.
    """
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not configured on this server",
        )
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise _unauthorized("Token has expired") from exc
    except JWTError as exc:
        raise _unauthorized("Token verification failed") from exc

    if not payload.get("sub"):
        raise _unauthorized("Token has no subject")
    return payload


def _parse_user_id(raw: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(raw))
    except ValueError as exc:
        raise _unauthorized("Malformed user id") from exc


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    FastAPI dependency: resolve and return the current authenticated User ORM object.

    Dev bypass: when DEV_SKIP_AUTH=true (development only), authentication is
    skipped and a User row is looked up from the X-Dev-User-ID header (or the
    first active district-magistrate if the header is absent).
    """
    settings = get_settings()

    # ------------------------------------------------------------------ #
    # Development bypass
    # ------------------------------------------------------------------ #
    if settings.auth_disabled:
        dev_user_id = _dev_user_id.get(None)
        if dev_user_id:
            user = await db.get(User, _parse_user_id(dev_user_id))
        else:
            result = await db.execute(
                select(User)
                .where(User.role == Role.DISTRICT_MAGISTRATE.value, User.is_active.is_(True))
                .order_by(User.created_at)
                .limit(1)
            )
            user = result.scalars().first()

        if user and user.is_active:
            return user
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Dev auth: no matching user found. "
                   "Set X-Dev-User-ID header or create a district-magistrate first.",
        )

    # ------------------------------------------------------------------ #
    # Bearer JWT
    # ------------------------------------------------------------------ #
    if not token:
        raise _unauthorized("Not authenticated")

    payload = verify_token(token)
    user = await db.get(User, _parse_user_id(payload["sub"]))

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return user


async def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(current_user)
