from .member import Member, MemberCreate, Instructor, InstructorCreate
from .class_session import (
    ClassSession,
    ClassSessionCreate,
    CapacityUpdate,
    CapacityUpdateResult,
    ClassCancel,
    ClassCancellationResult,
    Announcement,
    InstructorAssign,
)
from .booking import Booking, BookingCreate, BookingOutcome, CancelOutcome
from .waitlist import WaitlistJoin, WaitlistEntry, WaitlistPosition, WaitlistCount
from .review import RatingSubmit, Review, RatingSubmitted, RatingSummary
from .notification import Notification
