from datetime import datetime
from pydantic import BaseModel


class WaitlistJoin(BaseModel):
    member_id: int
    class_id: int


class WaitlistEntry(BaseModel):
    waitlist_id: int
    member_id: int
    class_id: int
    joined_at: datetime
    position: int

    class Config:
        from_attributes = True


class WaitlistPosition(BaseModel):
    class_id: int
    member_id: int
    position: int | None


class WaitlistCount(BaseModel):
    class_id: int
    count: int
