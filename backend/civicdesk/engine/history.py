"""Append-only status history log."""
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.engine.lifecycle import Transition
from civicdesk.models.complaint import StatusHistoryEntry


def append(session: AsyncSession, transition: Transition) -> StatusHistoryEntry:
    """Stage one history row for *transition* in the caller's transaction."""
    entry = StatusHistoryEntry(
        complaint_id=transition.complaint_id,
        status=transition.to_status.value,
        actor_id=transition.actor_id,
        notes=transition.notes,
        created_at=transition.at,
    )
    session.add(entry)
    return entry


async def entries_for(session: AsyncSession, complaint_id: uuid.UUID) -> list[StatusHistoryEntry]:
    result = await session.execute(
        select(StatusHistoryEntry)
        .where(StatusHistoryEntry.complaint_id == complaint_id)
        .order_by(StatusHistoryEntry.created_at, StatusHistoryEntry.id)
    )
    return list(result.scalars().all())
