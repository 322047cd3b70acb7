from datetime import date
from functools import lru_cache
import os
from pydantic import BaseModel, Field


class Settings(BaseModel):
    env: str = Field(default="dev", alias="ENV")
    timezone: str = Field(default="America/New_York", alias="TIMEZONE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(default="", alias="DATABASE_URL")
    postgres_db: str = Field(default="studio", alias="POSTGRES_DB")
    postgres_user: str = Field(default="studio", alias="POSTGRES_USER")
    postgres_password: str = Field(default="studio", alias="POSTGRES_PASSWORD")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")

    jwt_secret: str = Field(default="secret", alias="JWT_SECRET")
    jwt_expire_min: int = Field(default=43200, alias="JWT_EXPIRE_MIN")

    default_admin_email: str = Field(default="admin@studio.local", alias="DEFAULT_ADMIN_EMAIL")
    default_admin_password: str = Field(default="admin123", alias="DEFAULT_ADMIN_PASSWORD")

    resend_api_key: str = Field(default="", alias="RESEND_API_KEY")
    email_from: str = Field(default="Studio <noreply@studio.local>", alias="EMAIL_FROM")
    admin_notification_email: str = Field(default="", alias="ADMIN_NOTIFICATION_EMAIL")
    studio_name: str = Field(default="Pilates Studio", alias="STUDIO_NAME")
    studio_location: str = Field(default="", alias="STUDIO_LOCATION")
    app_url: str = Field(default="http://localhost:3000", alias="APP_URL")

    cron_secret: str = Field(default="", alias="CRON_SECRET")
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")

    # Soft opening day: classes on these dates cost no credits
    free_class_dates: str = Field(default="2025-12-13", alias="FREE_CLASS_DATES")
    waitlist_notify_limit: int = Field(default=5, alias="WAITLIST_NOTIFY_LIMIT")
    default_class_capacity: int = Field(default=15, alias="DEFAULT_CLASS_CAPACITY")
    reminder_hours_before: int = Field(default=24, alias="REMINDER_HOURS_BEFORE")

    notification_max_attempts: int = Field(default=4, alias="NOTIFICATION_MAX_ATTEMPTS")
    notification_retry_base_seconds: int = Field(
        default=60, alias="NOTIFICATION_RETRY_BASE_SECONDS"
    )

    rate_limit_booking_create: str = Field(default="10/3600", alias="RATE_LIMIT_BOOKING_CREATE")
    rate_limit_booking_cancel: str = Field(default="5/3600", alias="RATE_LIMIT_BOOKING_CANCEL")

    class Config:
        populate_by_name = True

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def free_dates(self) -> frozenset[date]:
        values = [item.strip() for item in self.free_class_dates.split(",")]
        return frozenset(date.fromisoformat(value) for value in values if value)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(**os.environ)
