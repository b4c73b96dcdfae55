"""
Department (routing table) endpoints.

Reads are open to department heads and the district-magistrate; writes to the
district-magistrate only.
"""
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.db import get_db
from civicdesk.core.security import get_current_actor
from civicdesk.engine.scope import Actor
from civicdesk.schemas.department import DepartmentCreate, DepartmentResponse, DepartmentUpdate
from civicdesk.services import departments as department_service

router = APIRouter(prefix="/departments", tags=["departments"])


@router.get("", response_model=list[DepartmentResponse])
async def list_departments(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[DepartmentResponse]:
    """Departments in routing-priority order."""
    departments = await department_service.list_departments(db, actor)
    return [DepartmentResponse.model_validate(d) for d in departments]


@router.post("", response_model=DepartmentResponse, status_code=status.HTTP_201_CREATED)
async def create_department(
    payload: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DepartmentResponse:
    department = await department_service.create_department(db, actor, payload)
    return DepartmentResponse.model_validate(department)


@router.put("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: uuid.UUID,
    payload: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> DepartmentResponse:
    department = await department_service.update_department(db, actor, department_id, payload)
    return DepartmentResponse.model_validate(department)
