from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from ..core.constants import (
    CANCELLATION_POLICY_TEXT_KEY,
    CANCELLATION_WINDOW_KEY,
    DEFAULT_CANCELLATION_WINDOW_HOURS,
    DEFAULT_PENALTY,
    LATE_CANCEL_PENALTY_KEY,
    NO_SHOW_PENALTY_KEY,
)
from ..db import models

_POLICY_KEYS = (
    CANCELLATION_WINDOW_KEY,
    LATE_CANCEL_PENALTY_KEY,
    NO_SHOW_PENALTY_KEY,
    CANCELLATION_POLICY_TEXT_KEY,
)


@dataclass(frozen=True, slots=True)
class CancellationPolicy:
    cancellation_window_hours: int = DEFAULT_CANCELLATION_WINDOW_HOURS
    late_cancel_penalty: str = DEFAULT_PENALTY
    no_show_penalty: str = DEFAULT_PENALTY
    cancellation_policy_text: str | None = None

    def describe(self) -> str:
        if self.cancellation_policy_text:
            return self.cancellation_policy_text
        return (
            f"Please cancel at least {self.cancellation_window_hours} hours before class "
            "to receive a credit refund."
        )


@dataclass(frozen=True, slots=True)
class CancellationOutcome:
    cancellation_type: models.CancellationType
    status: models.BookingStatus
    refund: bool
    penalty: str | None
    hours_until_class: float


def hours_between(now: datetime, starts_at: datetime) -> float:
    return (starts_at - now).total_seconds() / 3600


def classify_cancellation(
    hours_until_class: float, policy: CancellationPolicy
) -> CancellationOutcome:
    """Map the time left before class to the booking's terminal state."""
    if hours_until_class < 0:
        return CancellationOutcome(
            cancellation_type=models.CancellationType.no_show,
            status=models.BookingStatus.no_show,
            refund=False,
            penalty=policy.no_show_penalty,
            hours_until_class=hours_until_class,
        )
    if hours_until_class < policy.cancellation_window_hours:
        return CancellationOutcome(
            cancellation_type=models.CancellationType.late,
            status=models.BookingStatus.late_cancel,
            refund=False,
            penalty=policy.late_cancel_penalty,
            hours_until_class=hours_until_class,
        )
    return CancellationOutcome(
        cancellation_type=models.CancellationType.on_time,
        status=models.BookingStatus.cancelled,
        refund=True,
        penalty=None,
        hours_until_class=hours_until_class,
    )


def get_policy(db: Session) -> CancellationPolicy:
    rows = db.query(models.Setting).filter(models.Setting.key.in_(_POLICY_KEYS)).all()
    values = {row.key: row.value for row in rows if row.value not in (None, "")}
    window = values.get(CANCELLATION_WINDOW_KEY)
    return CancellationPolicy(
        cancellation_window_hours=int(window) if window is not None else DEFAULT_CANCELLATION_WINDOW_HOURS,
        late_cancel_penalty=values.get(LATE_CANCEL_PENALTY_KEY, DEFAULT_PENALTY),
        no_show_penalty=values.get(NO_SHOW_PENALTY_KEY, DEFAULT_PENALTY),
        cancellation_policy_text=values.get(CANCELLATION_POLICY_TEXT_KEY),
    )


def update_policy(
    db: Session,
    *,
    cancellation_window_hours: int | None = None,
    late_cancel_penalty: str | None = None,
    no_show_penalty: str | None = None,
    cancellation_policy_text: str | None = None,
    actor_id: int | None = None,
) -> CancellationPolicy:
    if cancellation_window_hours is not None and cancellation_window_hours < 0:
        raise ValueError("cancellation_window_hours must be >= 0")
    updates = {
        CANCELLATION_WINDOW_KEY: cancellation_window_hours,
        LATE_CANCEL_PENALTY_KEY: late_cancel_penalty,
        NO_SHOW_PENALTY_KEY: no_show_penalty,
        CANCELLATION_POLICY_TEXT_KEY: cancellation_policy_text,
    }
    for key, value in updates.items():
        if value is None:
            continue
        setting = db.get(models.Setting, key)
        if not setting:
            setting = models.Setting(key=key)
            db.add(setting)
        setting.value = str(value).strip()
        setting.updated_by_id = actor_id
    db.commit()
    return get_policy(db)


__all__ = [
    "CancellationOutcome",
    "CancellationPolicy",
    "classify_cancellation",
    "get_policy",
    "hours_between",
    "update_policy",
]
