"""
Notification inbox for the authenticated user.
"""
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.db import get_db
from civicdesk.core.security import get_current_actor
from civicdesk.engine.scope import Actor
from civicdesk.schemas.notification import NotificationResponse
from civicdesk.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[NotificationResponse]:
    items = await notification_service.list_for(
        db, actor, unread_only=unread_only, limit=max(limit, 1), offset=max(offset, 0)
    )
    return [NotificationResponse.model_validate(n) for n in items]


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> NotificationResponse:
    notification = await notification_service.mark_read(db, actor, notification_id)
    return NotificationResponse.model_validate(notification)
