"""Entry point for everything that touches class enrollment.

Screens and API routes talk to :class:`ClassEnrollmentFacade` only. It wires
the booking and waitlist coordinators to a shared unit-of-work runner and a
notification dispatcher; the coordinators own every booking and waitlist
write, the facade just sequences them.
"""

from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..core.constants import MEMBER_ACTOR
from ..db import models
from . import schedule_service
from .booking_service import (
    BookingCoordinator,
    BookingResult,
    CancelResult,
    CapacityUpdate,
    ClassCancellation,
)
from .notification_service import NotificationDispatcher, build_sms_gateway
from .rating_service import RatingAggregator, RatingSummary, SubmittedRating
from .transactions import ClassLockRegistry, ClassTransactions
from .waitlist_service import WaitlistCoordinator, WaitlistPosition


class ClassEnrollmentFacade:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        locks: ClassLockRegistry | None = None,
        notifier: NotificationDispatcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.session_factory = session_factory
        self.transactions = ClassTransactions(
            session_factory,
            locks,
            max_attempts=settings.enrollment_max_attempts,
            backoff_max=settings.enrollment_backoff_max,
        )
        self.notifier = notifier or NotificationDispatcher(
            session_factory, sms=build_sms_gateway(settings)
        )
        self.waitlist = WaitlistCoordinator(self.notifier)
        self.bookings = BookingCoordinator(self.transactions, self.waitlist, self.notifier)
        self.ratings = RatingAggregator()

    # Booking flows

    def book(
        self,
        class_id: int,
        member_id: int,
        *,
        source: models.BookingSource = models.BookingSource.member,
        timeout: float | None = None,
    ) -> BookingResult:
        return self.bookings.book(class_id, member_id, source=source, timeout=timeout)

    def cancel(
        self, booking_id: int, *, actor: str = MEMBER_ACTOR, timeout: float | None = None
    ) -> CancelResult:
        return self.bookings.cancel(booking_id, actor=actor, timeout=timeout)

    def mark_attended(self, booking_id: int, *, timeout: float | None = None) -> None:
        self.bookings.mark_attended(booking_id, timeout=timeout)

    def update_capacity(
        self,
        class_id: int,
        new_capacity: int,
        *,
        actor_id: int | None = None,
        timeout: float | None = None,
    ) -> CapacityUpdate:
        return self.bookings.update_capacity(
            class_id, new_capacity, actor_id=actor_id, timeout=timeout
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
        return self.bookings.cancel_class(
            class_id, reason, actor=actor, actor_id=actor_id, timeout=timeout
        )

    # Waitlist

    def join_waitlist(
        self, class_id: int, member_id: int, *, timeout: float | None = None
    ) -> WaitlistPosition:
        return self.transactions.run(
            class_id, lambda unit: self.waitlist.join(unit, member_id), timeout=timeout
        )

    def leave_waitlist(self, waitlist_id: int, *, timeout: float | None = None) -> bool:
        with self.session_factory() as db:
            class_id = self.waitlist.class_id_of(db, waitlist_id)
        return self.transactions.run(
            class_id, lambda unit: self.waitlist.leave(unit, waitlist_id), timeout=timeout
        )

    def waitlist_position(self, class_id: int, member_id: int) -> int | None:
        with self.session_factory() as db:
            return self.waitlist.position_of(db, class_id, member_id)

    def waitlist_count(self, class_id: int) -> int:
        with self.session_factory() as db:
            return self.waitlist.count(db, class_id)

    def class_waitlist(self, class_id: int) -> list[WaitlistPosition]:
        with self.session_factory() as db:
            return self.waitlist.list_for_class(db, class_id)

    def member_waitlist(self, member_id: int) -> list[WaitlistPosition]:
        with self.session_factory() as db:
            return self.waitlist.list_for_member(db, member_id)

    # Ratings

    def submit_rating(
        self, member_id: int, class_id: int, rating: int, review: str = ""
    ) -> SubmittedRating:
        with self.session_factory() as db:
            return self.ratings.submit(db, member_id, class_id, rating, review)

    def average_rating(self, class_id: int) -> RatingSummary:
        with self.session_factory() as db:
            return self.ratings.average_for(db, class_id)

    def class_reviews(self, class_id: int) -> list[models.ClassReview]:
        with self.session_factory() as db:
            return self.ratings.reviews_for(db, class_id)

    def member_review(self, member_id: int, class_id: int) -> models.ClassReview | None:
        with self.session_factory() as db:
            return self.ratings.member_review(db, member_id, class_id)

    def delete_review(self, review_id: int) -> None:
        with self.session_factory() as db:
            self.ratings.delete_review(db, review_id)

    # Class-wide messaging

    def announce(
        self, class_id: int, title: str, body: str, *, actor_id: int | None = None
    ) -> list[int]:
        with self.session_factory() as db:
            return schedule_service.announce(
                db, self.notifier, class_id, title=title, body=body, actor_id=actor_id
            )

    def change_instructor(self, class_id: int, instructor_id: int) -> models.ClassSession:
        with self.session_factory() as db:
            return schedule_service.change_instructor(db, self.notifier, class_id, instructor_id)

    def class_roster(self, class_id: int) -> list[models.Booking]:
        with self.session_factory() as db:
            return schedule_service.class_roster(db, class_id)
