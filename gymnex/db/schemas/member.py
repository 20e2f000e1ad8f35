from datetime import datetime
from pydantic import BaseModel


class MemberBase(BaseModel):
    full_name: str
    email: str | None = None
    phone: str | None = None


class MemberCreate(MemberBase):
    pass


class Member(MemberBase):
    id: int
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class InstructorCreate(BaseModel):
    full_name: str
    phone: str | None = None


class Instructor(InstructorCreate):
    id: int
    is_active: bool = True

    class Config:
        from_attributes = True
