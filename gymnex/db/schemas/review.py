from datetime import datetime
from pydantic import BaseModel


class RatingSubmit(BaseModel):
    member_id: int
    class_id: int
    rating: int
    review: str = ""


class Review(BaseModel):
    id: int
    member_id: int
    class_id: int
    rating: int
    review: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class RatingSubmitted(BaseModel):
    review: Review
    updated: bool


class RatingSummary(BaseModel):
    average: float
    count: int
