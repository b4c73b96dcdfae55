"""
Department administration — the routing table is edited through here.

Only the district-magistrate may create or update departments. Appointing a
head also sets that user's department affiliation.
"""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.errors import ConflictError, NotFoundError, ValidationError
from civicdesk.engine.routing import normalize_label
from civicdesk.engine.scope import Actor, Operation, authorize_operation
from civicdesk.models.base import utcnow
from civicdesk.models.department import Department
from civicdesk.models.user import Role, User
from civicdesk.schemas.department import DepartmentCreate, DepartmentUpdate

logger = logging.getLogger(__name__)

DEPARTMENT_STATUSES = {"active", "inactive"}


def _clean_categories(labels: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for label in labels:
        cleaned = normalize_label(label)
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


async def _appoint_head(session: AsyncSession, department: Department, head_id: uuid.UUID) -> None:
    head = await session.get(User, head_id)
    if head is None:
        raise NotFoundError(f"User {head_id} not found")
    if head.role != Role.DEPARTMENT_HEAD.value:
        raise ValidationError("The department head must have the department-head role")
    department.head_id = head.id
    head.department_id = department.id


async def list_departments(session: AsyncSession, actor: Actor) -> list[Department]:
    authorize_operation(actor, Operation.VIEW_DEPARTMENTS)
    result = await session.execute(
        select(Department).order_by(Department.routing_priority, Department.name)
    )
    return list(result.scalars().all())


async def create_department(session: AsyncSession, actor: Actor, payload: DepartmentCreate) -> Department:
    authorize_operation(actor, Operation.MANAGE_DEPARTMENTS)
    name = normalize_label(payload.name)
    name_local = normalize_label(payload.name_local)
    if not name or not name_local:
        raise ValidationError("Department name (both English and local) is required")

    now = utcnow()
    department = Department(
        id=uuid.uuid4(),
        name=name,
        name_local=name_local,
        description=payload.description,
        phone=payload.phone,
        email=payload.email,
        status="active",
        routing_priority=payload.routing_priority,
        categories=_clean_categories(payload.categories),
        created_at=now,
        updated_at=now,
    )
    try:
        session.add(department)
        await session.flush()
        if payload.head_id is not None:
            await _appoint_head(session, department, payload.head_id)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError(f"A department named '{name}' already exists") from exc
    except Exception:
        await session.rollback()
        raise

    logger.info("Department %s (%s) created by %s", department.id, department.name, actor.id)
    return department


async def update_department(
    session: AsyncSession,
    actor: Actor,
    department_id: uuid.UUID,
    payload: DepartmentUpdate,
) -> Department:
    authorize_operation(actor, Operation.MANAGE_DEPARTMENTS)
    department = await session.get(Department, department_id)
    if department is None:
        raise NotFoundError(f"Department {department_id} not found")
    if payload.status is not None and payload.status not in DEPARTMENT_STATUSES:
        raise ValidationError(f"status must be one of {sorted(DEPARTMENT_STATUSES)}")

    try:
        if payload.name is not None:
            department.name = normalize_label(payload.name)
        if payload.name_local is not None:
            department.name_local = normalize_label(payload.name_local)
        if payload.description is not None:
            department.description = payload.description
        if payload.phone is not None:
            department.phone = payload.phone
        if payload.email is not None:
            department.email = payload.email
        if payload.status is not None:
            department.status = payload.status
        if payload.routing_priority is not None:
            department.routing_priority = payload.routing_priority
        if payload.categories is not None:
            department.categories = _clean_categories(payload.categories)
        if payload.head_id is not None:
            await _appoint_head(session, department, payload.head_id)
        department.updated_at = utcnow()
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("A department with this name already exists") from exc
    except Exception:
        await session.rollback()
        raise

    await session.refresh(department)
    logger.info("Department %s updated by %s", department.id, actor.id)
    return department
