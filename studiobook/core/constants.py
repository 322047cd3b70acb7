"""Common application-wide constants."""

# Cancellation policy keys in the settings table
CANCELLATION_WINDOW_KEY = "cancellation_window_hours"
LATE_CANCEL_PENALTY_KEY = "late_cancel_penalty"
NO_SHOW_PENALTY_KEY = "no_show_penalty"
CANCELLATION_POLICY_TEXT_KEY = "cancellation_policy_text"

DEFAULT_CANCELLATION_WINDOW_HOURS = 24
DEFAULT_PENALTY = "lose_credit"

# Credits requested per booking when the client does not say
DEFAULT_BOOKING_CREDITS = 1


__all__ = [
    "CANCELLATION_WINDOW_KEY",
    "LATE_CANCEL_PENALTY_KEY",
    "NO_SHOW_PENALTY_KEY",
    "CANCELLATION_POLICY_TEXT_KEY",
    "DEFAULT_CANCELLATION_WINDOW_HOURS",
    "DEFAULT_PENALTY",
    "DEFAULT_BOOKING_CREDITS",
]
