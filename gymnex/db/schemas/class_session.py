from pydantic import BaseModel, Field

from ..models.class_session import DayOfWeek


class ClassSessionBase(BaseModel):
    name: str
    description: str | None = None
    day_of_week: DayOfWeek
    start_time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    duration_min: int = Field(default=60, gt=0)
    max_capacity: int = Field(gt=0)
    instructor_id: int | None = None


class ClassSessionCreate(ClassSessionBase):
    pass


class ClassSession(ClassSessionBase):
    id: int
    status: str
    cancellation_reason: str | None = None
    booked_seats: int | None = None
    available_seats: int | None = None
    waitlist_count: int | None = None

    class Config:
        from_attributes = True


class CapacityUpdate(BaseModel):
    max_capacity: int


class CapacityUpdateResult(BaseModel):
    class_id: int
    max_capacity: int
    active_bookings: int
    promoted_member_ids: list[int] = []


class ClassCancel(BaseModel):
    reason: str = ""


class ClassCancellationResult(BaseModel):
    class_id: int
    already_cancelled: bool
    cancelled_booking_ids: list[int]
    affected_member_ids: list[int]


class Announcement(BaseModel):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)


class InstructorAssign(BaseModel):
    instructor_id: int
