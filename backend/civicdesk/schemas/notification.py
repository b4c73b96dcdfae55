import uuid
from datetime import datetime

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: uuid.UUID
    complaint_id: uuid.UUID | None
    type: str
    message: str | None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
