"""Initial enrollment schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), unique=True),
        sa.Column("phone", sa.String(length=32)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "instructors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
    )

    day_of_week = postgresql.ENUM(
        "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
        name="dayofweek",
        create_type=False,
    )
    day_of_week.create(op.get_bind(), checkfirst=True)
    class_status = postgresql.ENUM("scheduled", "cancelled", name="classstatus", create_type=False)
    class_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "class_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("day_of_week", day_of_week),
        sa.Column("start_time", sa.String(length=5)),
        sa.Column("duration_min", sa.Integer()),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        sa.Column(
            "instructor_id", sa.Integer(), sa.ForeignKey("instructors.id", ondelete="SET NULL")
        ),
        sa.Column("status", class_status, server_default="scheduled"),
        sa.Column("cancellation_reason", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("max_capacity > 0", name="ck_class_session_capacity_positive"),
    )

    booking_status = postgresql.ENUM("confirmed", "attended", "cancelled", name="bookingstatus", create_type=False)
    booking_status.create(op.get_bind(), checkfirst=True)
    booking_source = postgresql.ENUM("member", "admin", "waitlist", name="bookingsource", create_type=False)
    booking_source.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE")),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("class_sessions.id", ondelete="CASCADE")),
        sa.Column("status", booking_status, server_default="confirmed"),
        sa.Column("source", booking_source, server_default="member"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("attended_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.String(length=64)),
    )
    op.create_index("ix_bookings_class_id", "bookings", ["class_id"])
    op.create_index(
        "uq_booking_active_member_class",
        "bookings",
        ["member_id", "class_id"],
        unique=True,
        postgresql_where=sa.text("status != 'cancelled'"),
    )

    waitlist_status = postgresql.ENUM(
        "waiting", "promoted", "left", "expired", name="waitliststatus", create_type=False
    )
    waitlist_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "waitlist_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE")),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("class_sessions.id", ondelete="CASCADE")),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", waitlist_status, server_default="waiting"),
        sa.Column("promoted_at", sa.DateTime(timezone=True)),
        sa.Column("left_at", sa.DateTime(timezone=True)),
    )
    op.create_index(
        "uq_waitlist_waiting_member_class",
        "waitlist_entries",
        ["member_id", "class_id"],
        unique=True,
        postgresql_where=sa.text("status = 'waiting'"),
    )
    op.create_index(
        "ix_waitlist_class_order",
        "waitlist_entries",
        ["class_id", "status", "joined_at", "id"],
    )

    op.create_table(
        "class_reviews",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE")),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("class_sessions.id", ondelete="CASCADE")),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("review", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("member_id", "class_id", name="uq_class_review_member_class"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_class_review_rating_range"),
    )
    op.create_index("ix_class_reviews_class_id", "class_reviews", ["class_id"])

    notification_type = postgresql.ENUM(
        "booking_confirmation",
        "booking_cancelled",
        "waitlist_joined",
        "waitlist_promotion",
        "class_cancelled",
        "announcement",
        "instructor_change",
        "reminder",
        name="notificationtype",
        create_type=False,
    )
    notification_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "class_notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE")),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("class_sessions.id", ondelete="SET NULL")),
        sa.Column("type", notification_type),
        sa.Column("title", sa.String(length=255)),
        sa.Column("message", sa.Text()),
        sa.Column("read", sa.Boolean(), server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_class_notifications_member_id", "class_notifications", ["member_id"])

    admin_role = postgresql.ENUM("admin", "manager", "instructor", name="adminrole", create_type=False)
    admin_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("login", sa.String(length=64), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", admin_role, server_default="instructor"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    actor_type = postgresql.ENUM("member", "admin", "system", name="actortype", create_type=False)
    actor_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_type", actor_type),
        sa.Column("actor_id", sa.Integer()),
        sa.Column("action", sa.String(length=255)),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("admin_users")
    op.drop_table("class_notifications")
    op.drop_table("class_reviews")
    op.drop_table("waitlist_entries")
    op.drop_table("bookings")
    op.drop_table("class_sessions")
    op.drop_table("instructors")
    op.drop_table("members")
    for enum_name in (
        "actortype",
        "adminrole",
        "notificationtype",
        "waitliststatus",
        "bookingsource",
        "bookingstatus",
        "classstatus",
        "dayofweek",
    ):
        postgresql.ENUM(name=enum_name).drop(op.get_bind(), checkfirst=True)
