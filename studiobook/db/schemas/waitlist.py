from datetime import datetime
from .booking import CamelModel


class WaitlistEntry(CamelModel):
    id: int
    class_id: int
    student_id: int
    position: int
    joined_at: datetime | None = None
    notified: bool

    @classmethod
    def from_model(cls, entry) -> "WaitlistEntry":
        return cls(
            id=entry.id,
            class_id=entry.class_session_id,
            student_id=entry.user_id,
            position=entry.position,
            joined_at=entry.joined_at,
            notified=entry.notified,
        )


class WaitlistNotifyResult(CamelModel):
    class_id: int
    notified: int
    entries: list[WaitlistEntry]
