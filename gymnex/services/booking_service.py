from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.constants import CLASS_CANCELED_REASON, MEMBER_ACTOR
from ..core.errors import (
    AlreadyBooked,
    BookingNotFound,
    CapacityBelowActiveBookings,
    ClassCancelled,
    InvalidCapacity,
    InvalidTransition,
    MemberNotFound,
)
from ..db import models
from .notification_service import NotificationDispatcher
from .transactions import ClassTransactions, ClassUnit
from .waitlist_service import WaitlistCoordinator


@dataclass(slots=True)
class BookingResult:
    status: str
    class_id: int
    member_id: int
    booking_id: int | None = None
    waitlist_id: int | None = None
    position: int | None = None

    @property
    def confirmed(self) -> bool:
        return self.status == "confirmed"

    def as_dict(self) -> dict:
        if self.status == "waitlisted":
            return {"status": "waitlisted", "position": self.position}
        return {"status": "confirmed"}


@dataclass(slots=True)
class Promotion:
    member_id: int
    waitlist_id: int
    booking_id: int


@dataclass(slots=True)
class CancelResult:
    booking_id: int
    class_id: int
    member_id: int
    already_cancelled: bool = False
    promotion: Promotion | None = None


@dataclass(slots=True)
class CapacityUpdate:
    class_id: int
    max_capacity: int
    active_bookings: int
    promotions: list[Promotion] = field(default_factory=list)


@dataclass(slots=True)
class ClassCancellation:
    class_id: int
    cancelled_booking_ids: list[int] = field(default_factory=list)
    affected_member_ids: list[int] = field(default_factory=list)
    already_cancelled: bool = False


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def count_active_bookings(db: Session, class_id: int) -> int:
    return db.scalar(
        select(func.count(models.Booking.id)).where(
            models.Booking.class_id == class_id,
            models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
        )
    ) or 0


def get_active_booking(db: Session, class_id: int, member_id: int) -> models.Booking | None:
    return db.execute(
        select(models.Booking).where(
            models.Booking.class_id == class_id,
            models.Booking.member_id == member_id,
            models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
        )
    ).scalar_one_or_none()


class BookingCoordinator:
    """Owns the capacity invariant of a class and the booking lifecycle.

    Capacity is checked by counting active bookings inside the class's unit
    of work; there is no separately maintained counter.
    """

    def __init__(
        self,
        transactions: ClassTransactions,
        waitlist: WaitlistCoordinator,
        notifier: NotificationDispatcher,
    ) -> None:
        self.transactions = transactions
        self.waitlist = waitlist
        self.notifier = notifier

    def book(
        self,
        class_id: int,
        member_id: int,
        *,
        source: models.BookingSource = models.BookingSource.member,
        timeout: float | None = None,
    ) -> BookingResult:
        return self.transactions.run(
            class_id, lambda unit: self._book(unit, member_id, source), timeout=timeout
        )

    def cancel(
        self,
        booking_id: int,
        *,
        actor: str = MEMBER_ACTOR,
        timeout: float | None = None,
    ) -> CancelResult:
        class_id = self._class_id_of(booking_id)
        return self.transactions.run(
            class_id, lambda unit: self._cancel(unit, booking_id, actor), timeout=timeout
        )

    def mark_attended(self, booking_id: int, *, timeout: float | None = None) -> None:
        class_id = self._class_id_of(booking_id)
        self.transactions.run(
            class_id, lambda unit: self._mark_attended(unit, booking_id), timeout=timeout
        )

    def update_capacity(
        self,
        class_id: int,
        new_capacity: int,
        *,
        actor_id: int | None = None,
        timeout: float | None = None,
    ) -> CapacityUpdate:
        if isinstance(new_capacity, bool) or not isinstance(new_capacity, int) or new_capacity < 1:
            raise InvalidCapacity()
        return self.transactions.run(
            class_id,
            lambda unit: self._update_capacity(unit, new_capacity, actor_id),
            timeout=timeout,
        )

    def cancel_class(
        self,
        class_id: int,
        reason: str = "",
        *,
        actor: str,
        actor_id: int | None = None,
        timeout: float | None = None,
    ) -> ClassCancellation:
        return self.transactions.run(
            class_id,
            lambda unit: self._cancel_class(unit, reason, actor, actor_id),
            timeout=timeout,
        )

    def _book(
        self, unit: ClassUnit, member_id: int, source: models.BookingSource
    ) -> BookingResult:
        db = unit.db
        class_session = unit.class_session
        if class_session.status == models.ClassStatus.cancelled:
            raise ClassCancelled()
        if db.get(models.Member, member_id) is None:
            raise MemberNotFound()
        if get_active_booking(db, unit.class_id, member_id) is not None:
            raise AlreadyBooked()

        if count_active_bookings(db, unit.class_id) < class_session.max_capacity:
            booking = self._create_booking(unit, member_id, source)
            self.waitlist.settle_member(unit, member_id)
            unit.after_commit(
                partial(self.notifier.booking_confirmed, member_id, unit.class_id)
            )
            return BookingResult(
                status="confirmed",
                class_id=unit.class_id,
                member_id=member_id,
                booking_id=booking.id,
            )

        joined = self.waitlist.join(unit, member_id)
        return BookingResult(
            status="waitlisted",
            class_id=unit.class_id,
            member_id=member_id,
            waitlist_id=joined.waitlist_id,
            position=joined.position,
        )

    def _cancel(self, unit: ClassUnit, booking_id: int, actor: str) -> CancelResult:
        booking = self._get_booking(unit, booking_id)
        result = CancelResult(
            booking_id=booking.id, class_id=booking.class_id, member_id=booking.member_id
        )
        if booking.status == models.BookingStatus.cancelled:
            result.already_cancelled = True
            return result

        booking.status = models.BookingStatus.cancelled
        booking.cancelled_at = _utc_now()
        booking.cancelled_by = actor
        unit.db.flush()
        unit.after_commit(
            partial(self.notifier.booking_cancelled, booking.member_id, unit.class_id)
        )

        if unit.class_session.status == models.ClassStatus.scheduled:
            promotions = self._fill_open_seats(unit, limit=1)
            if promotions:
                result.promotion = promotions[0]
        return result

    def _mark_attended(self, unit: ClassUnit, booking_id: int) -> None:
        booking = self._get_booking(unit, booking_id)
        if booking.status != models.BookingStatus.confirmed:
            raise InvalidTransition(
                f"Cannot mark a {booking.status.value} booking as attended"
            )
        booking.status = models.BookingStatus.attended
        booking.attended_at = _utc_now()

    def _update_capacity(
        self, unit: ClassUnit, new_capacity: int, actor_id: int | None
    ) -> CapacityUpdate:
        class_session = unit.class_session
        active = count_active_bookings(unit.db, unit.class_id)
        if new_capacity < active:
            raise CapacityBelowActiveBookings(
                f"Class has {active} active bookings; capacity {new_capacity} is too low"
            )
        previous = class_session.max_capacity
        class_session.max_capacity = new_capacity
        unit.db.add(
            models.AuditLog(
                actor_type=models.ActorType.admin if actor_id else models.ActorType.system,
                actor_id=actor_id,
                action="class_capacity_updated",
                payload={
                    "class_id": unit.class_id,
                    "previous": previous,
                    "current": new_capacity,
                    "active_bookings": active,
                },
            )
        )
        unit.db.flush()
        promotions = []
        if new_capacity > previous and class_session.status == models.ClassStatus.scheduled:
            promotions = self._fill_open_seats(unit)
        return CapacityUpdate(
            class_id=unit.class_id,
            max_capacity=new_capacity,
            active_bookings=active + len(promotions),
            promotions=promotions,
        )

    def _cancel_class(
        self, unit: ClassUnit, reason: str, actor: str, actor_id: int | None
    ) -> ClassCancellation:
        class_session = unit.class_session
        if class_session.status == models.ClassStatus.cancelled:
            return ClassCancellation(class_id=unit.class_id, already_cancelled=True)

        now = _utc_now()
        class_session.status = models.ClassStatus.cancelled
        class_session.cancellation_reason = reason or CLASS_CANCELED_REASON
        bookings = (
            unit.db.execute(
                select(models.Booking)
                .where(
                    models.Booking.class_id == unit.class_id,
                    models.Booking.status.in_(models.ACTIVE_BOOKING_STATUSES),
                )
                .order_by(models.Booking.id)
            )
            .scalars()
            .all()
        )
        for booking in bookings:
            booking.status = models.BookingStatus.cancelled
            booking.cancelled_at = now
            booking.cancelled_by = actor
        waiting_members = self.waitlist.expire_all(unit)
        affected = list(dict.fromkeys([b.member_id for b in bookings] + waiting_members))

        unit.db.add(
            models.AuditLog(
                actor_type=models.ActorType.admin,
                actor_id=actor_id,
                action="class_cancelled",
                payload={
                    "class_id": unit.class_id,
                    "reason": reason,
                    "cancelled_bookings": len(bookings),
                    "expired_waitlist": len(waiting_members),
                },
            )
        )
        unit.after_commit(
            partial(self.notifier.class_cancelled, affected, unit.class_id, reason)
        )
        return ClassCancellation(
            class_id=unit.class_id,
            cancelled_booking_ids=[b.id for b in bookings],
            affected_member_ids=affected,
        )

    def _fill_open_seats(self, unit: ClassUnit, limit: int | None = None) -> list[Promotion]:
        promotions: list[Promotion] = []
        capacity = unit.class_session.max_capacity
        while limit is None or len(promotions) < limit:
            if count_active_bookings(unit.db, unit.class_id) >= capacity:
                break
            promoted = self.waitlist.promote(unit)
            if promoted is None:
                break
            if get_active_booking(unit.db, unit.class_id, promoted.member_id) is not None:
                # Already holds a seat; the entry is settled without a new booking
                continue
            booking = self._create_booking(
                unit, promoted.member_id, models.BookingSource.waitlist
            )
            unit.after_commit(
                partial(self.notifier.waitlist_promoted, promoted.member_id, unit.class_id)
            )
            promotions.append(
                Promotion(
                    member_id=promoted.member_id,
                    waitlist_id=promoted.waitlist_id,
                    booking_id=booking.id,
                )
            )
        return promotions

    def _create_booking(
        self, unit: ClassUnit, member_id: int, source: models.BookingSource
    ) -> models.Booking:
        booking = models.Booking(
            member_id=member_id,
            class_id=unit.class_id,
            status=models.BookingStatus.confirmed,
            source=source,
            created_at=_utc_now(),
        )
        unit.db.add(booking)
        try:
            unit.db.flush()
        except IntegrityError as exc:
            # uq_booking_active_member_class
            raise AlreadyBooked() from exc
        return booking

    @staticmethod
    def _get_booking(unit: ClassUnit, booking_id: int) -> models.Booking:
        booking = unit.db.get(models.Booking, booking_id)
        if booking is None or booking.class_id != unit.class_id:
            raise BookingNotFound()
        return booking

    def _class_id_of(self, booking_id: int) -> int:
        with self.transactions.session_factory() as db:
            class_id = db.scalar(
                select(models.Booking.class_id).where(models.Booking.id == booking_id)
            )
        if class_id is None:
            raise BookingNotFound()
        return class_id
