from datetime import datetime, timedelta
import logging
from collections.abc import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.constants import CAPACITY_VIOLATION_ACTION
from ..db import models
from ..db.session import SessionLocal
from ..services.notification_service import NotificationDispatcher, build_sms_gateway

logger = logging.getLogger(__name__)

_WEEKDAYS = list(models.DayOfWeek)


def send_class_reminders(
    session_factory: Callable[[], Session] = SessionLocal,
    *,
    today: datetime | None = None,
    notifier: NotificationDispatcher | None = None,
) -> int:
    """Remind everyone booked on a class that runs tomorrow. Returns the class count."""
    today = today or datetime.now()
    tomorrow = _WEEKDAYS[(today + timedelta(days=1)).weekday()]
    notifier = notifier or NotificationDispatcher(session_factory, sms=build_sms_gateway())
    reminders: list[tuple[int, list[int]]] = []
    with session_factory() as db:
        classes = (
            db.query(models.ClassSession)
            .filter(models.ClassSession.day_of_week == tomorrow)
            .filter(models.ClassSession.status == models.ClassStatus.scheduled)
            .all()
        )
        for class_session in classes:
            member_ids = [
                member_id
                for (member_id,) in db.query(models.Booking.member_id)
                .filter(models.Booking.class_id == class_session.id)
                .filter(models.Booking.status == models.BookingStatus.confirmed)
                .all()
            ]
            if member_ids:
                reminders.append((class_session.id, member_ids))
    for class_id, member_ids in reminders:
        try:
            notifier.class_reminder(member_ids, class_id)
        except Exception:
            logger.exception("Failed to send class reminder", extra={"class_id": class_id})
    return len(reminders)


def _latest_violations(db: Session, class_ids: list[int]) -> dict[int, dict]:
    latest: dict[int, dict] = {}
    rows = (
        db.query(models.AuditLog.payload)
        .filter(models.AuditLog.action == CAPACITY_VIOLATION_ACTION)
        .order_by(models.AuditLog.id.desc())
        .all()
    )
    for (payload,) in rows:
        class_id = (payload or {}).get("class_id")
        if class_id in class_ids and class_id not in latest:
            latest[class_id] = payload
    return latest


def reconcile_capacity(session_factory: Callable[[], Session] = SessionLocal) -> list[int]:
    """Report classes holding more active bookings than seats.

    Such classes can only appear through edits made outside the enrollment
    services. Nothing is revoked; new bookings are refused until cancellations
    bring the class back under its capacity. A violation is audited once;
    later runs only log it again while its numbers stay the same.
    """
    with session_factory() as db:
        over_capacity = (
            db.query(models.ClassSession.id, models.ClassSession.max_capacity, func.count(models.Booking.id))
            .join(models.Booking, models.Booking.class_id == models.ClassSession.id)
            .filter(models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES))
            .group_by(models.ClassSession.id, models.ClassSession.max_capacity)
            .having(func.count(models.Booking.id) > models.ClassSession.max_capacity)
            .all()
        )
        recorded = _latest_violations(db, [class_id for class_id, _, _ in over_capacity])
        for class_id, max_capacity, active in over_capacity:
            payload = {
                "class_id": class_id,
                "max_capacity": max_capacity,
                "active_bookings": active,
            }
            if recorded.get(class_id) == payload:
                logger.info("Class is still over capacity", extra=payload)
                continue
            logger.warning("Class is over capacity", extra=payload)
            db.add(
                models.AuditLog(
                    actor_type=models.ActorType.system,
                    action=CAPACITY_VIOLATION_ACTION,
                    payload=payload,
                )
            )
        db.commit()
    return [class_id for class_id, _, _ in over_capacity]


def get_scheduler() -> AsyncIOScheduler:
    settings = get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_job(send_class_reminders, "cron", hour=settings.reminder_hour)
    scheduler.add_job(reconcile_capacity, "interval", hours=1)
    return scheduler
