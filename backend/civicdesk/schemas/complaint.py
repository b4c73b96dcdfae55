import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field


class ComplaintCreate(BaseModel):
    categories: list[str]
    latitude: float
    longitude: float
    evidence_ref: str
    note: str | None = None
    ward: str | None = None
    priority: str | None = None


class AssignRequest(BaseModel):
    worker_id: uuid.UUID
    department_id: uuid.UUID | None = None
    estimated_completion: date | None = None
    notes: str | None = None


class CompleteRequest(BaseModel):
    evidence_ref: str | None = None
    completion_notes: str | None = None


class PatchRequest(BaseModel):
    status: str | None = None
    priority: str | None = None
    notes: str | None = None


class FeedbackRequest(BaseModel):
    rating: int
    feedback: str | None = Field(default=None, max_length=2000)


class ComplaintResponse(BaseModel):
    id: uuid.UUID
    reporter_id: uuid.UUID
    categories: list[str]
    note: str | None
    latitude: float
    longitude: float
    ward: str | None
    evidence_ref: str
    completion_evidence_ref: str | None
    status: str
    priority: str
    assigned_worker_id: uuid.UUID | None
    assigned_department_id: uuid.UUID | None
    estimated_completion: date | None
    assigned_at: datetime | None
    completed_at: datetime | None
    completion_notes: str | None
    citizen_rating: int | None
    citizen_feedback: str | None
    created_at: datetime
    updated_at: datetime
    version: int

    model_config = {"from_attributes": True}


class HistoryEntryResponse(BaseModel):
    id: int
    complaint_id: uuid.UUID
    status: str
    actor_id: uuid.UUID | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class CategorySuggestionResponse(BaseModel):
    categories: list[str]
    vocabulary_version: int
