"""Initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2025-11-20
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "userrole": ("admin", "instructor", "student"),
    "classstatus": ("scheduled", "cancelled", "completed"),
    "paymentstatus": ("pending", "completed", "failed", "refunded"),
    "paymentmethod": ("external_checkout", "cash", "admin"),
    "purchasetype": ("package", "single_class", "admin_grant"),
    "bookingstatus": ("confirmed", "cancelled", "late_cancel", "no_show"),
    "cancellationtype": ("on_time", "late", "no_show", "class_cancelled"),
    "notificationtype": (
        "booking_confirmation",
        "cancellation",
        "waitlist_available",
        "class_cancelled",
        "class_reminder",
        "instructor_booking",
        "admin_booking",
    ),
    "notificationstatus": ("pending", "sent", "failed"),
    "actortype": ("user", "admin", "system"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=255)),
        sa.Column("phone", sa.String(length=32)),
        sa.Column("role", _enum("userrole"), server_default="student"),
        sa.Column("password_hash", sa.String(length=255)),
        sa.Column("email_reminders", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "instructors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("bio", sa.Text()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "class_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("duration_minutes", sa.Integer(), server_default="50"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
    )

    op.create_table(
        "class_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("class_type_id", sa.Integer(), sa.ForeignKey("class_types.id")),
        sa.Column("instructor_id", sa.Integer(), sa.ForeignKey("instructors.id")),
        sa.Column("date", sa.Date(), index=True),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("price", sa.Numeric(10, 2)),
        sa.Column("status", _enum("classstatus"), server_default="scheduled"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("capacity > 0", name="ck_class_session_capacity_positive"),
    )

    op.create_table(
        "packages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("credits", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("expiration_days", sa.Integer()),
        sa.Column("checkout_url", sa.String(length=512)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("credits > 0", name="ck_package_credits_positive"),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id")),
        sa.Column("amount", sa.Numeric(10, 2)),
        sa.Column("currency", sa.CHAR(3), server_default="USD"),
        sa.Column("method", _enum("paymentmethod")),
        sa.Column("external_reference", sa.String(length=128), unique=True),
        sa.Column("status", _enum("paymentstatus"), server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "credit_lots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), index=True),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id")),
        sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id")),
        sa.Column("purchase_type", _enum("purchasetype"), server_default="package"),
        sa.Column("credits_remaining", sa.Integer(), server_default="0"),
        sa.Column("credits_total", sa.Integer(), server_default="0"),
        sa.Column("purchased_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.CheckConstraint("credits_remaining >= 0", name="ck_credit_lot_remaining_non_negative"),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column(
            "class_session_id",
            sa.Integer(),
            sa.ForeignKey("class_sessions.id", ondelete="CASCADE"),
        ),
        sa.Column("status", _enum("bookingstatus"), server_default="confirmed"),
        sa.Column("booked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancellation_type", _enum("cancellationtype")),
        sa.Column("credits_used", sa.Integer(), server_default="0"),
        sa.CheckConstraint("credits_used >= 0", name="ck_booking_credits_used_non_negative"),
    )
    op.create_index(
        "uq_booking_confirmed_user_class",
        "bookings",
        ["user_id", "class_session_id"],
        unique=True,
        postgresql_where=sa.text("status = 'confirmed'"),
    )
    op.create_index("ix_booking_class_session", "bookings", ["class_session_id"])

    op.create_table(
        "waitlist",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE")),
        sa.Column(
            "class_session_id",
            sa.Integer(),
            sa.ForeignKey("class_sessions.id", ondelete="CASCADE"),
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("notified", sa.Boolean(), server_default=sa.false()),
        sa.UniqueConstraint("user_id", "class_session_id", name="uq_waitlist_user_class"),
        sa.UniqueConstraint("class_session_id", "position", name="uq_waitlist_class_position"),
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column(
            "updated_by_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("key"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("booking_id", sa.Integer(), index=True),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("notification_type", _enum("notificationtype")),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", _enum("notificationstatus"), server_default="pending"),
        sa.Column("attempts", sa.Integer(), server_default="0"),
        sa.Column("last_error", sa.Text()),
        sa.Column("next_attempt_at", sa.DateTime(timezone=True)),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_type", _enum("actortype")),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action_created", "audit_logs", ["action", "created_at"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "notifications",
        "settings",
        "waitlist",
        "bookings",
        "credit_lots",
        "payments",
        "packages",
        "class_sessions",
        "class_types",
        "instructors",
        "users",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
