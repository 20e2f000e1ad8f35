from datetime import datetime
from pydantic import BaseModel


class Notification(BaseModel):
    id: int
    member_id: int
    class_id: int | None = None
    type: str
    title: str
    message: str
    read: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True
