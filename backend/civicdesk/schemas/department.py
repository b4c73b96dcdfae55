import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    name_local: str = Field(min_length=1, max_length=200)
    head_id: uuid.UUID | None = None
    description: str | None = None
    phone: str | None = Field(default=None, max_length=20)
    email: EmailStr | None = None
    routing_priority: int = 100
    categories: list[str] = Field(default_factory=list)


class DepartmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    name_local: str | None = Field(default=None, min_length=1, max_length=200)
    head_id: uuid.UUID | None = None
    description: str | None = None
    phone: str | None = Field(default=None, max_length=20)
    email: EmailStr | None = None
    status: str | None = None
    routing_priority: int | None = None
    categories: list[str] | None = None


class DepartmentResponse(BaseModel):
    id: uuid.UUID
    name: str
    name_local: str
    head_id: uuid.UUID | None
    description: str | None
    phone: str | None
    email: str | None
    status: str
    routing_priority: int
    categories: list[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
