from . import (
    booking_service,
    enrollment_service,
    notification_service,
    rating_service,
    schedule_service,
    transactions,
    waitlist_service,
)
__all__ = [
    "booking_service",
    "enrollment_service",
    "notification_service",
    "rating_service",
    "schedule_service",
    "transactions",
    "waitlist_service",
]
