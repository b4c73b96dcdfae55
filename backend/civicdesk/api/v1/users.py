"""
User directory endpoints.

Accounts are provisioned by the identity provider; this API only reads them.
/me is open to every authenticated user, the listing to staff.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import false, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.db import get_db
from civicdesk.core.rbac import require_operation
from civicdesk.core.security import get_current_user
from civicdesk.engine.scope import Actor, Operation
from civicdesk.models.user import Role, User
from civicdesk.schemas.user import UserListResponse, UserResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user's own profile."""
    return UserResponse.model_validate(current_user)


@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = 1,
    page_size: int = 20,
    role: Role | None = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_operation(Operation.VIEW_USERS)),
) -> UserListResponse:
    """List users with pagination. Department heads see their own department only."""
    page = max(page, 1)
    page_size = min(max(page_size, 1), 100)
    offset = (page - 1) * page_size

    filters = []
    if role is not None:
        filters.append(User.role == role.value)
    if actor.role is Role.DEPARTMENT_HEAD:
        filters.append(
            User.department_id == actor.department_id if actor.department_id is not None else false()
        )

    total_result = await db.execute(select(func.count()).select_from(User).where(*filters))
    total = total_result.scalar_one()

    result = await db.execute(
        select(User).where(*filters).order_by(User.full_name).offset(offset).limit(page_size)
    )
    users = result.scalars().all()
    logger.debug("Listed %d of %d users for %s (page %d)", len(users), total, actor.id, page)

    return UserListResponse.build(
        [UserResponse.model_validate(u) for u in users], total=total, page=page, page_size=page_size
    )
