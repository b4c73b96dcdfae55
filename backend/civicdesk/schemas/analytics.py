import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Analytics payloads are serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecentComplaint(CamelModel):
    id: uuid.UUID
    categories: list[str]
    status: str
    priority: str
    ward: str | None = None
    created_at: datetime


class DashboardAnalytics(CamelModel):
    total_complaints: int = 0
    submitted_complaints: int = 0
    assigned_complaints: int = 0
    completed_complaints: int = 0
    unrouted_complaints: int = 0
    avg_resolution_days: float = 0.0
    category_breakdown: dict[str, int] = Field(default_factory=dict)
    priority_breakdown: dict[str, int] = Field(default_factory=dict)
    ward_breakdown: dict[str, int] = Field(default_factory=dict)
    hourly_distribution: dict[int, int] = Field(default_factory=dict)
    recent_complaints: list[RecentComplaint] = Field(default_factory=list)


class DepartmentStats(CamelModel):
    department_id: uuid.UUID | None = None
    name: str
    name_local: str | None = None
    total_complaints: int = 0
    submitted_complaints: int = 0
    assigned_complaints: int = 0
    resolved_complaints: int = 0
    avg_resolution_days: float = 0.0
    avg_rating: float = 0.0
    total_workers: int = 0


class WorkerStats(CamelModel):
    worker_id: uuid.UUID
    name: str
    department_id: uuid.UUID | None = None
    total_assigned: int = 0
    total_completed: int = 0
    efficiency_rating: float = 0.0
    avg_completion_hours: float = 0.0
    current_status: str = "available"
    active_assignments: int = 0
    completed_in_scope: int = 0
