import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from civicdesk.models.user import User
from civicdesk.models.worker import WorkerProfile


class WorkerProfileUpsert(BaseModel):
    user_id: uuid.UUID
    specializations: list[str] | None = None
    department_id: uuid.UUID | None = None


class WorkerStatusUpdate(BaseModel):
    current_status: Literal["available", "busy", "offline"] | None = None
    latitude: float | None = None
    longitude: float | None = None


class WorkerResponse(BaseModel):
    user_id: uuid.UUID
    full_name: str
    department_id: uuid.UUID | None
    is_active: bool
    specializations: list[str] = Field(default_factory=list)
    efficiency_rating: float = 0.0
    total_assigned: int = 0
    total_completed: int = 0
    avg_completion_hours: float | None = None
    current_status: str = "available"
    location_lat: float | None = None
    location_lng: float | None = None
    last_active: datetime | None = None

    @classmethod
    def build(cls, user: User, profile: WorkerProfile | None) -> "WorkerResponse":
        base = cls(
            user_id=user.id,
            full_name=user.full_name,
            department_id=user.department_id,
            is_active=user.is_active,
        )
        if profile is None:
            return base
        return base.model_copy(update={
            "specializations": list(profile.specializations or []),
            "efficiency_rating": profile.efficiency_rating,
            "total_assigned": profile.total_assigned,
            "total_completed": profile.total_completed,
            "avg_completion_hours": profile.avg_completion_hours,
            "current_status": profile.current_status,
            "location_lat": profile.location_lat,
            "location_lng": profile.location_lng,
            "last_active": profile.last_active,
        })
