from . import (
    auth,
    bookings,
    classes,
    class_types,
    credits,
    instructors,
    misc,
    packages,
    payments,
    reports,
    settings,
    users,
    waitlist,
)

__all__ = [
    "auth",
    "bookings",
    "classes",
    "class_types",
    "credits",
    "instructors",
    "misc",
    "packages",
    "payments",
    "reports",
    "settings",
    "users",
    "waitlist",
]
