from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from ..session import Base


class NotificationType(str, PyEnum):
    booking_confirmation = "booking_confirmation"
    booking_cancelled = "booking_cancelled"
    waitlist_joined = "waitlist_joined"
    waitlist_promotion = "waitlist_promotion"
    class_cancelled = "class_cancelled"
    announcement = "announcement"
    instructor_change = "instructor_change"
    reminder = "reminder"


class ClassNotification(Base):
    __tablename__ = "class_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"), index=True
    )
    class_id: Mapped[int | None] = mapped_column(ForeignKey("class_sessions.id", ondelete="SET NULL"))
    type: Mapped[NotificationType] = mapped_column(Enum(NotificationType))
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)
    read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
