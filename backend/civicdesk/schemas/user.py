import uuid
from datetime import datetime

from pydantic import BaseModel

from civicdesk.schemas.common import Page


class UserResponse(BaseModel):
    id: uuid.UUID
    full_name: str
    email: str | None
    phone_number: str | None
    role: str
    department_id: uuid.UUID | None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


UserListResponse = Page[UserResponse]
