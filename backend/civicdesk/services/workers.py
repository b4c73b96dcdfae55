"""
Field-worker roster: profile upkeep and availability/location updates.

Counter fields on the profile (total_assigned, total_completed, efficiency,
average completion hours) belong to the assignment ledger and are never
written here.
"""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from civicdesk.engine.lifecycle import validate_location
from civicdesk.engine.routing import normalize_label
from civicdesk.engine.scope import Actor, Operation, authorize_operation
from civicdesk.models.base import utcnow
from civicdesk.models.department import Department
from civicdesk.models.user import Role, User
from civicdesk.models.worker import WorkerAvailability, WorkerProfile

logger = logging.getLogger(__name__)


async def _load_field_worker(session: AsyncSession, worker_id: uuid.UUID) -> User:
    worker = await session.get(User, worker_id)
    if worker is None or worker.role != Role.FIELD_WORKER.value:
        raise NotFoundError(f"Field worker {worker_id} not found")
    return worker


def _check_department(actor: Actor, worker: User) -> None:
    if actor.role is Role.DEPARTMENT_HEAD and worker.department_id != actor.department_id:
        raise AuthorizationError("Worker belongs to another department")


async def list_workers(session: AsyncSession, actor: Actor) -> list[tuple[User, WorkerProfile | None]]:
    authorize_operation(actor, Operation.VIEW_WORKERS)
    stmt = (
        select(User, WorkerProfile)
        .outerjoin(WorkerProfile, WorkerProfile.user_id == User.id)
        .where(User.role == Role.FIELD_WORKER.value)
        .order_by(User.full_name)
        .execution_options(populate_existing=True)
    )
    if actor.role is Role.DEPARTMENT_HEAD:
        if actor.department_id is None:
            return []
        stmt = stmt.where(User.department_id == actor.department_id)
    result = await session.execute(stmt)
    return [(user, profile) for user, profile in result.all()]


async def upsert_profile(
    session: AsyncSession,
    actor: Actor,
    worker_id: uuid.UUID,
    *,
    specializations: list[str] | None = None,
    department_id: uuid.UUID | None = None,
) -> WorkerProfile:
    """Create or update a worker's profile. Heads may only touch their own staff."""
    authorize_operation(actor, Operation.MANAGE_WORKERS)
    worker = await _load_field_worker(session, worker_id)
    _check_department(actor, worker)
    if department_id is not None and actor.role is Role.DEPARTMENT_HEAD and department_id != actor.department_id:
        raise AuthorizationError("A department head may not move workers to another department")
    if department_id is not None and await session.get(Department, department_id) is None:
        raise NotFoundError(f"Department {department_id} not found")

    now = utcnow()
    try:
        profile = await session.get(WorkerProfile, worker.id)
        if profile is None:
            profile = WorkerProfile(
                user_id=worker.id,
                specializations=[],
                total_assigned=0,
                total_completed=0,
                efficiency_rating=0.0,
                current_status=WorkerAvailability.AVAILABLE.value,
                created_at=now,
                updated_at=now,
            )
            session.add(profile)
        if specializations is not None:
            profile.specializations = [s for s in (normalize_label(x) for x in specializations) if s]
        if department_id is not None:
            worker.department_id = department_id
        profile.updated_at = now
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError(f"Profile for worker {worker_id} changed concurrently; retry") from exc
    except Exception:
        await session.rollback()
        raise

    await session.refresh(profile)
    logger.info("Worker profile %s updated by %s", worker.id, actor.id)
    return profile


async def update_status(
    session: AsyncSession,
    actor: Actor,
    worker_id: uuid.UUID,
    *,
    current_status: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> WorkerProfile:
    """Availability and last known position. Workers may only update themselves."""
    authorize_operation(actor, Operation.UPDATE_WORKER_STATUS)
    if actor.role is Role.FIELD_WORKER and actor.id != worker_id:
        raise AuthorizationError("Field workers may only update their own status")
    worker = await _load_field_worker(session, worker_id)
    _check_department(actor, worker)

    if current_status is not None:
        try:
            current_status = WorkerAvailability(current_status).value
        except ValueError as exc:
            raise ValidationError(
                f"current_status must be one of {[s.value for s in WorkerAvailability]}"
            ) from exc
    if (latitude is None) != (longitude is None):
        raise ValidationError("latitude and longitude must be given together")
    if latitude is not None:
        latitude, longitude = validate_location(latitude, longitude)

    profile = await session.get(WorkerProfile, worker.id)
    if profile is None:
        raise NotFoundError(f"Worker {worker_id} has no profile")

    now = utcnow()
    if current_status is not None:
        profile.current_status = current_status
    if latitude is not None:
        profile.location_lat = latitude
        profile.location_lng = longitude
    profile.last_active = now
    profile.updated_at = now
    await session.commit()
    await session.refresh(profile)
    logger.debug("Worker %s status=%s", worker.id, profile.current_status)
    return profile
