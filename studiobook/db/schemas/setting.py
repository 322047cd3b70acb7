from pydantic import BaseModel, Field


class CancellationPolicy(BaseModel):
    cancellation_window_hours: int
    late_cancel_penalty: str
    no_show_penalty: str
    cancellation_policy_text: str | None = None
    description: str

    class Config:
        from_attributes = True


class CancellationPolicyUpdate(BaseModel):
    cancellation_window_hours: int | None = Field(default=None, ge=0)
    late_cancel_penalty: str | None = None
    no_show_penalty: str | None = None
    cancellation_policy_text: str | None = None
