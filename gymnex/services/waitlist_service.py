from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import (
    AlreadyBooked,
    AlreadyWaitlisted,
    ClassCancelled,
    MemberNotFound,
    SeatsAvailable,
    WaitlistEntryNotFound,
)
from ..db import models
from .notification_service import NotificationDispatcher
from .transactions import ClassUnit


@dataclass(slots=True)
class PromotedMember:
    waitlist_id: int
    member_id: int
    class_id: int


@dataclass(slots=True)
class WaitlistPosition:
    waitlist_id: int
    member_id: int
    class_id: int
    joined_at: datetime
    position: int


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _waiting(class_id: int):
    return select(models.WaitlistEntry).where(
        models.WaitlistEntry.class_id == class_id,
        models.WaitlistEntry.status == models.WaitlistStatus.waiting,
    )


def _queue_order():
    return (models.WaitlistEntry.joined_at, models.WaitlistEntry.id)


class WaitlistCoordinator:
    """FIFO waitlist per class.

    Mutations take the caller's :class:`ClassUnit` so they share its lock and
    transaction; reads take a plain session. Positions are never stored: a
    member's position is their 1-based rank among the class's waiting entries
    ordered by ``(joined_at, id)``.
    """

    def __init__(self, notifier: NotificationDispatcher) -> None:
        self.notifier = notifier

    def join(self, unit: ClassUnit, member_id: int) -> WaitlistPosition:
        db = unit.db
        if unit.class_session.status == models.ClassStatus.cancelled:
            raise ClassCancelled()
        if db.get(models.Member, member_id) is None:
            raise MemberNotFound()
        if self._waiting_entry(db, unit.class_id, member_id) is not None:
            raise AlreadyWaitlisted()
        active = select(func.count(models.Booking.id)).where(
            models.Booking.class_id == unit.class_id,
            models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
        )
        if db.scalar(active.where(models.Booking.member_id == member_id)):
            raise AlreadyBooked()
        # Only a full class has a queue
        if (db.scalar(active) or 0) < unit.class_session.max_capacity:
            raise SeatsAvailable()

        entry = models.WaitlistEntry(
            member_id=member_id,
            class_id=unit.class_id,
            joined_at=_utc_now(),
            status=models.WaitlistStatus.waiting,
        )
        db.add(entry)
        try:
            db.flush()
        except IntegrityError as exc:
            raise AlreadyWaitlisted() from exc

        position = self._rank(db, entry)
        unit.after_commit(
            partial(self.notifier.waitlist_joined, member_id, unit.class_id, position)
        )
        return WaitlistPosition(
            waitlist_id=entry.id,
            member_id=member_id,
            class_id=unit.class_id,
            joined_at=entry.joined_at,
            position=position,
        )

    def leave(self, unit: ClassUnit, waitlist_id: int) -> bool:
        entry = unit.db.get(models.WaitlistEntry, waitlist_id)
        if entry is None or entry.class_id != unit.class_id:
            raise WaitlistEntryNotFound()
        if entry.status != models.WaitlistStatus.waiting:
            return False
        entry.status = models.WaitlistStatus.left
        entry.left_at = _utc_now()
        unit.db.flush()
        return True

    def promote(self, unit: ClassUnit) -> PromotedMember | None:
        """Mark the head of the queue as promoted and hand it to the caller.

        The caller must create the member's booking in the same unit of work;
        this method never books anyone itself.
        """
        entry = (
            unit.db.execute(_waiting(unit.class_id).order_by(*_queue_order()).limit(1))
            .scalars()
            .first()
        )
        if entry is None:
            return None
        entry.status = models.WaitlistStatus.promoted
        entry.promoted_at = _utc_now()
        unit.db.flush()
        return PromotedMember(
            waitlist_id=entry.id, member_id=entry.member_id, class_id=entry.class_id
        )

    def settle_member(self, unit: ClassUnit, member_id: int) -> bool:
        """Mark a member's waiting entry promoted after they got a seat directly."""
        entry = self._waiting_entry(unit.db, unit.class_id, member_id)
        if entry is None:
            return False
        entry.status = models.WaitlistStatus.promoted
        entry.promoted_at = _utc_now()
        unit.db.flush()
        return True

    def expire_all(self, unit: ClassUnit) -> list[int]:
        entries = unit.db.execute(_waiting(unit.class_id).order_by(*_queue_order())).scalars().all()
        now = _utc_now()
        for entry in entries:
            entry.status = models.WaitlistStatus.expired
            entry.left_at = now
        unit.db.flush()
        return [entry.member_id for entry in entries]

    def position_of(self, db: Session, class_id: int, member_id: int) -> int | None:
        entry = self._waiting_entry(db, class_id, member_id)
        if entry is None:
            return None
        return self._rank(db, entry)

    def count(self, db: Session, class_id: int) -> int:
        return db.scalar(
            select(func.count(models.WaitlistEntry.id)).where(
                models.WaitlistEntry.class_id == class_id,
                models.WaitlistEntry.status == models.WaitlistStatus.waiting,
            )
        ) or 0

    def list_for_class(self, db: Session, class_id: int) -> list[WaitlistPosition]:
        entries = db.execute(_waiting(class_id).order_by(*_queue_order())).scalars().all()
        return [
            WaitlistPosition(
                waitlist_id=entry.id,
                member_id=entry.member_id,
                class_id=entry.class_id,
                joined_at=entry.joined_at,
                position=index,
            )
            for index, entry in enumerate(entries, start=1)
        ]

    def list_for_member(self, db: Session, member_id: int) -> list[WaitlistPosition]:
        entries = (
            db.execute(
                select(models.WaitlistEntry)
                .where(
                    models.WaitlistEntry.member_id == member_id,
                    models.WaitlistEntry.status == models.WaitlistStatus.waiting,
                )
                .order_by(models.WaitlistEntry.joined_at.desc(), models.WaitlistEntry.id.desc())
            )
            .scalars()
            .all()
        )
        return [
            WaitlistPosition(
                waitlist_id=entry.id,
                member_id=entry.member_id,
                class_id=entry.class_id,
                joined_at=entry.joined_at,
                position=self._rank(db, entry),
            )
            for entry in entries
        ]

    def class_id_of(self, db: Session, waitlist_id: int) -> int:
        class_id = db.scalar(
            select(models.WaitlistEntry.class_id).where(models.WaitlistEntry.id == waitlist_id)
        )
        if class_id is None:
            raise WaitlistEntryNotFound()
        return class_id

    @staticmethod
    def _waiting_entry(
        db: Session, class_id: int, member_id: int
    ) -> models.WaitlistEntry | None:
        return db.execute(
            _waiting(class_id).where(models.WaitlistEntry.member_id == member_id)
        ).scalar_one_or_none()

    @staticmethod
    def _rank(db: Session, entry: models.WaitlistEntry) -> int:
        ahead = db.scalar(
            select(func.count(models.WaitlistEntry.id)).where(
                models.WaitlistEntry.class_id == entry.class_id,
                models.WaitlistEntry.status == models.WaitlistStatus.waiting,
                or_(
                    models.WaitlistEntry.joined_at < entry.joined_at,
                    and_(
                        models.WaitlistEntry.joined_at == entry.joined_at,
                        models.WaitlistEntry.id < entry.id,
                    ),
                ),
            )
        )
        return (ahead or 0) + 1
