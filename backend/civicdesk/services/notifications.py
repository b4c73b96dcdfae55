"""
Notification outbox.

Rows are staged inside the caller's transaction, so a notification exists
exactly when the lifecycle change that produced it was committed.
"""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.errors import NotFoundError
from civicdesk.engine.scope import Actor
from civicdesk.models.base import utcnow
from civicdesk.models.notification import Notification

logger = logging.getLogger(__name__)

ASSIGNMENT = "assignment"
COMPLETION = "completion"
STATUS_CHANGE = "status_change"


def stage(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    complaint_id: uuid.UUID | None,
    type: str,
    message: str,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        complaint_id=complaint_id,
        type=type,
        message=message,
        is_read=False,
        created_at=utcnow(),
    )
    session.add(notification)
    return notification


async def list_for(
    session: AsyncSession,
    actor: Actor,
    *,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == actor.id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc()).offset(offset).limit(min(limit, 200))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def mark_read(session: AsyncSession, actor: Actor, notification_id: uuid.UUID) -> Notification:
    notification = await session.get(Notification, notification_id)
    # another user's notification is reported as missing
    if notification is None or notification.user_id != actor.id:
        raise NotFoundError("Notification not found")
    notification.is_read = True
    await session.commit()
    await session.refresh(notification)
    return notification
