from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ..core.errors import ClassCancelled, ClassNotFound, InstructorNotFound, InvalidCapacity
from ..db import models
from .notification_service import NotificationDispatcher
from .transactions import ClassTransactions


@dataclass(slots=True)
class ClassOverview:
    class_session: models.ClassSession
    booked_seats: int
    available_seats: int
    waitlist_count: int


def create_class(
    db: Session,
    *,
    name: str,
    day_of_week: models.DayOfWeek,
    start_time: str,
    max_capacity: int,
    duration_min: int = 60,
    description: str | None = None,
    instructor_id: int | None = None,
) -> models.ClassSession:
    if max_capacity < 1:
        raise InvalidCapacity()
    if instructor_id is not None and db.get(models.Instructor, instructor_id) is None:
        raise InstructorNotFound()
    class_session = models.ClassSession(
        name=name,
        description=description,
        day_of_week=day_of_week,
        start_time=start_time,
        duration_min=duration_min,
        max_capacity=max_capacity,
        instructor_id=instructor_id,
    )
    db.add(class_session)
    db.commit()
    db.refresh(class_session)
    return class_session


def list_classes(
    db: Session,
    *,
    day_of_week: models.DayOfWeek | None = None,
    instructor_id: int | None = None,
    include_cancelled: bool = False,
) -> list[ClassOverview]:
    query = db.query(models.ClassSession).options(selectinload(models.ClassSession.instructor))
    if day_of_week:
        query = query.filter(models.ClassSession.day_of_week == day_of_week)
    if instructor_id:
        query = query.filter(models.ClassSession.instructor_id == instructor_id)
    if not include_cancelled:
        query = query.filter(models.ClassSession.status == models.ClassStatus.scheduled)
    classes = query.order_by(models.ClassSession.id).all()
    class_ids = [item.id for item in classes]
    if class_ids:
        booked = dict(
            db.query(models.Booking.class_id, func.count(models.Booking.id))
            .filter(models.Booking.class_id.in_(class_ids))
            .filter(models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES))
            .group_by(models.Booking.class_id)
            .all()
        )
        waiting = dict(
            db.query(models.WaitlistEntry.class_id, func.count(models.WaitlistEntry.id))
            .filter(models.WaitlistEntry.class_id.in_(class_ids))
            .filter(models.WaitlistEntry.status == models.WaitlistStatus.waiting)
            .group_by(models.WaitlistEntry.class_id)
            .all()
        )
    else:
        booked, waiting = {}, {}
    overview = []
    for item in classes:
        seats = int(booked.get(item.id, 0))
        overview.append(
            ClassOverview(
                class_session=item,
                booked_seats=seats,
                available_seats=max(item.max_capacity - seats, 0),
                waitlist_count=int(waiting.get(item.id, 0)),
            )
        )
    return overview


def class_roster(db: Session, class_id: int) -> list[models.Booking]:
    if db.get(models.ClassSession, class_id) is None:
        raise ClassNotFound()
    return list(
        db.execute(
            select(models.Booking)
            .options(selectinload(models.Booking.member))
            .where(
                models.Booking.class_id == class_id,
                models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
            )
            .order_by(models.Booking.created_at, models.Booking.id)
        ).scalars()
    )


def _enrolled_member_ids(db: Session, class_id: int) -> list[int]:
    return list(
        db.scalars(
            select(models.Booking.member_id)
            .where(
                models.Booking.class_id == class_id,
                models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
            )
            .order_by(models.Booking.id)
        )
    )


def change_instructor(
    db: Session,
    notifier: NotificationDispatcher,
    class_id: int,
    instructor_id: int,
) -> models.ClassSession:
    class_session = db.get(models.ClassSession, class_id)
    if class_session is None:
        raise ClassNotFound()
    instructor = db.get(models.Instructor, instructor_id)
    if instructor is None:
        raise InstructorNotFound()
    if class_session.instructor_id == instructor_id:
        return class_session
    class_session.instructor_id = instructor_id
    db.commit()
    db.refresh(class_session)
    ClassTransactions.run_hooks(
        [
            partial(
                notifier.instructor_changed,
                _enrolled_member_ids(db, class_id),
                class_id,
                instructor.full_name,
            )
        ]
    )
    return class_session


def announce(
    db: Session,
    notifier: NotificationDispatcher,
    class_id: int,
    *,
    title: str,
    body: str,
    actor_id: int | None = None,
) -> list[int]:
    class_session = db.get(models.ClassSession, class_id)
    if class_session is None:
        raise ClassNotFound()
    if class_session.status == models.ClassStatus.cancelled:
        raise ClassCancelled()
    recipients = _enrolled_member_ids(db, class_id)
    db.add(
        models.AuditLog(
            actor_type=models.ActorType.admin,
            actor_id=actor_id,
            action="class_announcement",
            payload={"class_id": class_id, "title": title, "recipients": len(recipients)},
        )
    )
    db.commit()
    ClassTransactions.run_hooks(
        [partial(notifier.custom_announcement, recipients, class_id, title, body)]
    )
    return recipients
