from __future__ import annotations

import enum
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from kintai.db import Base


class WorkType(str, enum.Enum):
    WORK = "work"
    REMOTE = "remote"
    LATE = "late"
    EARLY_LEAVE = "early-leave"
    LATE_EARLY = "late-early"
    LEGAL_HOLIDAY = "legal-holiday"
    EXTRA_HOLIDAY = "extra-holiday"


HOLIDAY_WORK_TYPES = frozenset({WorkType.LEGAL_HOLIDAY, WorkType.EXTRA_HOLIDAY})


class LeaveType(str, enum.Enum):
    PAID = "paid"
    ABSENT = "absent"
    SPECIAL = "special"
    CONGRATULATION = "congratulation"


class HolidayType(str, enum.Enum):
    LEGAL_HOLIDAY = "legal-holiday"
    EXTRA_HOLIDAY = "extra-holiday"
    SATURDAY_WORK = "saturday-work"


class ApprovalStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuditActorType(str, enum.Enum):
    USER = "USER"
    APPROVER = "APPROVER"
    SYSTEM = "SYSTEM"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [item.value for item in enum_cls]


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class MonthlySettings(TimestampMixin, Base):
    __tablename__ = "monthly_settings"
    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", name="uq_monthly_settings_user_month"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_monthly_settings_month"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    standard_hours: Mapped[Decimal] = mapped_column(
        Numeric(4, 2),
        nullable=False,
        default=Decimal("8"),
        server_default=text("8"),
    )

    pattern1_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern1_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern1_break1_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern1_break1_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern1_break2_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern1_break2_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern1_break3_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern1_break3_end: Mapped[time | None] = mapped_column(Time, nullable=True)

    pattern2_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern2_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern2_break1_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern2_break1_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern2_break2_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern2_break2_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern2_break3_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern2_break3_end: Mapped[time | None] = mapped_column(Time, nullable=True)

    pattern3_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern3_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern3_break1_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern3_break1_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern3_break2_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern3_break2_end: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern3_break3_start: Mapped[time | None] = mapped_column(Time, nullable=True)
    pattern3_break3_end: Mapped[time | None] = mapped_column(Time, nullable=True)


class DailyRecord(TimestampMixin, Base):
    __tablename__ = "daily_records"
    __table_args__ = (
        UniqueConstraint("user_id", "work_date", name="uq_daily_records_user_date"),
        CheckConstraint("work_pattern >= 1 AND work_pattern <= 3", name="ck_daily_records_work_pattern"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    work_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    work_type: Mapped[WorkType] = mapped_column(
        Enum(WorkType, name="work_type", values_callable=_enum_values),
        nullable=False,
        default=WorkType.WORK,
    )
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    late_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    early_leave_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    overtime: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    night_overtime: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    leave_type: Mapped[LeaveType | None] = mapped_column(
        Enum(LeaveType, name="leave_type", values_callable=_enum_values),
        nullable=True,
    )
    work_pattern: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))
    note: Mapped[str | None] = mapped_column(Text, nullable=True)


class Approval(TimestampMixin, Base):
    __tablename__ = "approvals"
    __table_args__ = (
        UniqueConstraint("user_id", "year", "month", name="uq_approvals_user_month"),
        CheckConstraint("month >= 1 AND month <= 12", name="ck_approvals_month"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus, name="approval_status", values_callable=_enum_values),
        nullable=False,
        default=ApprovalStatus.DRAFT,
        server_default=text("'draft'"),
        index=True,
    )
    requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class AnnualHoliday(TimestampMixin, Base):
    __tablename__ = "annual_holidays"
    __table_args__ = (
        UniqueConstraint("user_id", "year", "holiday_date", name="uq_annual_holidays_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False)
    holiday_type: Mapped[HolidayType] = mapped_column(
        Enum(HolidayType, name="holiday_type", values_callable=_enum_values),
        nullable=False,
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )
