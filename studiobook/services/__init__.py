from . import (
    booking_service,
    cancellation_policy,
    capacity,
    credit_ledger,
    notification_service,
    payment_service,
    reports,
    schedule_service,
    waitlist_service,
)
__all__ = [
    "booking_service",
    "cancellation_policy",
    "capacity",
    "credit_ledger",
    "notification_service",
    "payment_service",
    "reports",
    "schedule_service",
    "waitlist_service",
]
