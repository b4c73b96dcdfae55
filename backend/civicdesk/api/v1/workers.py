"""
Field-worker roster endpoints.
"""
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.db import get_db
from civicdesk.core.security import get_current_actor
from civicdesk.engine.scope import Actor
from civicdesk.models.user import User
from civicdesk.schemas.worker import WorkerProfileUpsert, WorkerResponse, WorkerStatusUpdate
from civicdesk.services import workers as worker_service

router = APIRouter(prefix="/workers", tags=["workers"])


@router.get("", response_model=list[WorkerResponse])
async def list_workers(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[WorkerResponse]:
    rows = await worker_service.list_workers(db, actor)
    return [WorkerResponse.build(user, profile) for user, profile in rows]


@router.post("", response_model=WorkerResponse)
async def upsert_worker(
    payload: WorkerProfileUpsert,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> WorkerResponse:
    """Create or update a field-worker's profile."""
    profile = await worker_service.upsert_profile(
        db,
        actor,
        payload.user_id,
        specializations=payload.specializations,
        department_id=payload.department_id,
    )
    user = await db.get(User, profile.user_id)
    return WorkerResponse.build(user, profile)


@router.patch("/{user_id}/status", response_model=WorkerResponse)
async def update_worker_status(
    user_id: uuid.UUID,
    payload: WorkerStatusUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> WorkerResponse:
    profile = await worker_service.update_status(
        db,
        actor,
        user_id,
        current_status=payload.current_status,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    user = await db.get(User, profile.user_id)
    return WorkerResponse.build(user, profile)
