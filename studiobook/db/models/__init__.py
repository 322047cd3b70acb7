from .user import User, UserRole
from .instructor import Instructor
from .class_type import ClassType
from .class_session import ClassSession, ClassStatus
from .package import Package
from .payment import Payment, PaymentStatus, PaymentMethod
from .credit_lot import CreditLot, PurchaseType
from .booking import Booking, BookingStatus, CancellationType, TERMINAL_STATUSES
from .waitlist import WaitlistEntry
from .setting import Setting
from .notification import Notification, NotificationStatus, NotificationType
from .audit_log import AuditLog, ActorType
