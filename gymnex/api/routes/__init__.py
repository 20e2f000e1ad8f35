from . import (
    auth,
    members,
    classes,
    bookings,
    waitlist,
    ratings,
    notifications,
)

__all__ = [
    "auth",
    "members",
    "classes",
    "bookings",
    "waitlist",
    "ratings",
    "notifications",
]
