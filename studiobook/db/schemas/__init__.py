from .user import User, UserCreate, UserUpdate, Token
from .class_type import ClassType, ClassTypeCreate, ClassTypeUpdate
from .instructor import Instructor, InstructorCreate, InstructorUpdate
from .class_session import ClassSession, ClassSessionCreate, ClassSessionUpdate
from .package import Package, PackageCreate, PackageUpdate
from .payment import Payment, PaymentCreate
from .credit import CreditLot, CreditSummary, CreditGrant
from .booking import (
    Booking,
    BookingAttendance,
    BookingCreated,
    BookingCancelled,
    CancellationDetails,
    BookingStats,
    ClassAttendance,
)
from .waitlist import WaitlistEntry, WaitlistNotifyResult
from .setting import CancellationPolicy, CancellationPolicyUpdate
