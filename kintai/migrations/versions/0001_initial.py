"""Initial timecard schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

work_type = postgresql.ENUM(
    "work",
    "remote",
    "late",
    "early-leave",
    "late-early",
    "legal-holiday",
    "extra-holiday",
    name="work_type",
    create_type=False,
)
leave_type = postgresql.ENUM(
    "paid",
    "absent",
    "special",
    "congratulation",
    name="leave_type",
    create_type=False,
)
holiday_type = postgresql.ENUM(
    "legal-holiday",
    "extra-holiday",
    "saturday-work",
    name="holiday_type",
    create_type=False,
)
approval_status = postgresql.ENUM(
    "draft",
    "pending",
    "approved",
    "rejected",
    name="approval_status",
    create_type=False,
)
audit_actor_type = postgresql.ENUM(
    "USER",
    "APPROVER",
    "SYSTEM",
    name="audit_actor_type",
    create_type=False,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    ]


def _pattern_columns() -> list[sa.Column]:
    columns: list[sa.Column] = []
    for pattern in (1, 2, 3):
        columns.append(sa.Column(f"pattern{pattern}_start", sa.Time(), nullable=True))
        columns.append(sa.Column(f"pattern{pattern}_end", sa.Time(), nullable=True))
        for interval in (1, 2, 3):
            columns.append(sa.Column(f"pattern{pattern}_break{interval}_start", sa.Time(), nullable=True))
            columns.append(sa.Column(f"pattern{pattern}_break{interval}_end", sa.Time(), nullable=True))
    return columns


def upgrade() -> None:
    bind = op.get_bind()
    work_type.create(bind, checkfirst=True)
    leave_type.create(bind, checkfirst=True)
    holiday_type.create(bind, checkfirst=True)
    approval_status.create(bind, checkfirst=True)
    audit_actor_type.create(bind, checkfirst=True)

    op.create_table(
        "monthly_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("standard_hours", sa.Numeric(4, 2), nullable=False, server_default=sa.text("8")),
        *_pattern_columns(),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "year", "month", name="uq_monthly_settings_user_month"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_monthly_settings_month"),
    )
    op.create_index("ix_monthly_settings_user_id", "monthly_settings", ["user_id"], unique=False)

    op.create_table(
        "daily_records",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("work_type", work_type, nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("late_time", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("early_leave_time", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("overtime", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("night_overtime", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("leave_type", leave_type, nullable=True),
        sa.Column("work_pattern", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "work_date", name="uq_daily_records_user_date"),
        sa.CheckConstraint("work_pattern >= 1 AND work_pattern <= 3", name="ck_daily_records_work_pattern"),
    )
    op.create_index("ix_daily_records_user_id", "daily_records", ["user_id"], unique=False)
    op.create_index("ix_daily_records_work_date", "daily_records", ["work_date"], unique=False)

    op.create_table(
        "approvals",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("status", approval_status, nullable=False, server_default=sa.text("'draft'")),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(length=64), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "year", "month", name="uq_approvals_user_month"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_approvals_month"),
    )
    op.create_index("ix_approvals_user_id", "approvals", ["user_id"], unique=False)
    op.create_index("ix_approvals_status", "approvals", ["status"], unique=False)

    op.create_table(
        "annual_holidays",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("holiday_date", sa.Date(), nullable=False),
        sa.Column("holiday_type", holiday_type, nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "year", "holiday_date", name="uq_annual_holidays_user_date"),
    )
    op.create_index("ix_annual_holidays_user_id", "annual_holidays", ["user_id"], unique=False)
    op.create_index("ix_annual_holidays_year", "annual_holidays", ["year"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "ts_utc",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_annual_holidays_year", table_name="annual_holidays")
    op.drop_index("ix_annual_holidays_user_id", table_name="annual_holidays")
    op.drop_table("annual_holidays")
    op.drop_index("ix_approvals_status", table_name="approvals")
    op.drop_index("ix_approvals_user_id", table_name="approvals")
    op.drop_table("approvals")
    op.drop_index("ix_daily_records_work_date", table_name="daily_records")
    op.drop_index("ix_daily_records_user_id", table_name="daily_records")
    op.drop_table("daily_records")
    op.drop_index("ix_monthly_settings_user_id", table_name="monthly_settings")
    op.drop_table("monthly_settings")

    bind = op.get_bind()
    audit_actor_type.drop(bind, checkfirst=True)
    approval_status.drop(bind, checkfirst=True)
    holiday_type.drop(bind, checkfirst=True)
    leave_type.drop(bind, checkfirst=True)
    work_type.drop(bind, checkfirst=True)
