from .member import Member
from .instructor import Instructor
from .class_session import ClassSession, ClassStatus, DayOfWeek
from .booking import Booking, BookingStatus, BookingSource, ACTIVE_BOOKING_STATUSES
from .waitlist import WaitlistEntry, WaitlistStatus
from .review import ClassReview
from .notification import ClassNotification, NotificationType
from .admin_user import AdminUser, AdminRole
from .audit_log import AuditLog, ActorType
