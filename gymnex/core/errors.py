"""Errors raised by the enrollment services.

Every error carries a stable ``code`` that callers can branch on and a
``category`` describing how it should be handled:

* ``precondition`` - a business rule rejected the call; retrying is pointless.
* ``invalid`` - the arguments themselves are malformed.
* ``not_found`` - a referenced record does not exist.
* ``contention`` - the store kept reporting conflicts after the bounded
  internal retries; the caller may try again later.
* ``deadline`` - the caller's deadline expired before the unit of work
  committed; nothing was written.
"""

from __future__ import annotations


class EnrollmentError(Exception):
    code = "ENROLLMENT_ERROR"
    category = "precondition"
    default_message = "Enrollment operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def as_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class AlreadyBooked(EnrollmentError):
    code = "ALREADY_BOOKED"
    default_message = "Member already has an active booking for this class"


class AlreadyWaitlisted(EnrollmentError):
    code = "ALREADY_WAITLISTED"
    default_message = "Member is already on the waitlist for this class"


class InvalidTransition(EnrollmentError):
    code = "INVALID_TRANSITION"
    default_message = "Booking is not in a state that allows this change"


class CapacityBelowActiveBookings(EnrollmentError):
    code = "CAPACITY_BELOW_ACTIVE_BOOKINGS"
    default_message = "Capacity cannot be lower than the number of active bookings"


class ClassCancelled(EnrollmentError):
    code = "CLASS_CANCELLED"
    default_message = "Class has been cancelled"


class SeatsAvailable(EnrollmentError):
    code = "SEATS_AVAILABLE"
    default_message = "Class still has free seats; book it instead of joining the waitlist"


class InvalidCapacity(EnrollmentError):
    code = "INVALID_CAPACITY"
    category = "invalid"
    default_message = "Capacity must be a positive integer"


class InvalidRating(EnrollmentError):
    code = "INVALID_RATING"
    category = "invalid"
    default_message = "Rating must be an integer between 1 and 5"


class ClassNotFound(EnrollmentError):
    code = "CLASS_NOT_FOUND"
    category = "not_found"
    default_message = "Class not found"


class BookingNotFound(EnrollmentError):
    code = "BOOKING_NOT_FOUND"
    category = "not_found"
    default_message = "Booking not found"


class MemberNotFound(EnrollmentError):
    code = "MEMBER_NOT_FOUND"
    category = "not_found"
    default_message = "Member not found"


class InstructorNotFound(EnrollmentError):
    code = "INSTRUCTOR_NOT_FOUND"
    category = "not_found"
    default_message = "Instructor not found"


class WaitlistEntryNotFound(EnrollmentError):
    code = "WAITLIST_ENTRY_NOT_FOUND"
    category = "not_found"
    default_message = "Waitlist entry not found"


class ReviewNotFound(EnrollmentError):
    code = "REVIEW_NOT_FOUND"
    category = "not_found"
    default_message = "Review not found"


class TryAgain(EnrollmentError):
    code = "TRY_AGAIN"
    category = "contention"
    default_message = "The class is busy, please try again"


class DeadlineExceeded(EnrollmentError):
    code = "DEADLINE_EXCEEDED"
    category = "deadline"
    default_message = "Operation deadline expired before it could complete"


__all__ = [
    "EnrollmentError",
    "AlreadyBooked",
    "AlreadyWaitlisted",
    "InvalidTransition",
    "CapacityBelowActiveBookings",
    "ClassCancelled",
    "SeatsAvailable",
    "InvalidCapacity",
    "InvalidRating",
    "ClassNotFound",
    "BookingNotFound",
    "MemberNotFound",
    "InstructorNotFound",
    "WaitlistEntryNotFound",
    "ReviewNotFound",
    "TryAgain",
    "DeadlineExceeded",
]
