"""Common application-wide constants."""

# Actors recorded on cancelled bookings
MEMBER_ACTOR = "member"
SYSTEM_ACTOR = "system"

# Metadata for bookings cancelled together with their class
CLASS_CANCELED_REASON = "class_cancelled"

# Classes with more active bookings than seats are reported by the reconciler
CAPACITY_VIOLATION_ACTION = "capacity_violation_detected"


__all__ = [
    "MEMBER_ACTOR",
    "SYSTEM_ACTOR",
    "CLASS_CANCELED_REASON",
    "CAPACITY_VIOLATION_ACTION",
]
