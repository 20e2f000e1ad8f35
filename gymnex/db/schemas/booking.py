from datetime import datetime
from pydantic import BaseModel


class BookingBase(BaseModel):
    member_id: int
    class_id: int


class BookingCreate(BookingBase):
    source: str = "member"


class BookingOutcome(BaseModel):
    status: str
    position: int | None = None
    booking_id: int | None = None
    waitlist_id: int | None = None


class CancelOutcome(BaseModel):
    booking_id: int
    already_cancelled: bool
    promoted_member_id: int | None = None
    promoted_booking_id: int | None = None


class Booking(BookingBase):
    id: int
    status: str
    source: str
    created_at: datetime | None = None
    attended_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None

    class Config:
        from_attributes = True
