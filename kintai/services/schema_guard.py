from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine, Inspector
from sqlalchemy.exc import SQLAlchemyError


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "monthly_settings": {
        "id",
        "user_id",
        "year",
        "month",
        "standard_hours",
        "pattern1_start",
        "pattern3_break3_end",
    },
    "daily_records": {
        "id",
        "user_id",
        "work_date",
        "work_type",
        "overtime",
        "night_overtime",
        "work_pattern",
    },
    "approvals": {"id", "user_id", "year", "month", "status", "approved_by"},
    "annual_holidays": {"id", "user_id", "year", "holiday_date", "holiday_type"},
    "audit_logs": {"id", "actor_id", "action", "details"},
    "alembic_version": {"version_num"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "work_type": {
        "work",
        "remote",
        "late",
        "early-leave",
        "late-early",
        "legal-holiday",
        "extra-holiday",
    },
    "approval_status": {"draft", "pending", "approved", "rejected"},
    "holiday_type": {"legal-holiday", "extra-holiday", "saturday-work"},
    "leave_type": {"paid", "absent", "special", "congratulation"},
    "audit_actor_type": {"USER", "APPROVER", "SYSTEM"},
}


EXPECTED_ALEMBIC_HEAD = "0001_initial"


def _missing_columns(inspector: Inspector) -> list[str]:
    issues: list[str] = []
    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            present = {str(column.get("name")) for column in inspector.get_columns(table_name)}
        except SQLAlchemyError as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        missing = sorted(required_columns - present)
        if missing:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing)}")
    return issues


def _enum_labels(inspector: Inspector) -> tuple[dict[str, set[str]], list[str]]:
    try:
        enums = inspector.get_enums() or []
    except (SQLAlchemyError, NotImplementedError) as exc:
        return {}, [f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}"]

    labels_by_name: dict[str, set[str]] = {}
    for item in enums:
        name = str(item.get("name") or "").strip()
        labels = item.get("labels")
        if name and isinstance(labels, list):
            labels_by_name[name] = {str(label) for label in labels}
    return labels_by_name, []


def _enum_findings(labels_by_name: dict[str, set[str]]) -> tuple[list[str], list[str]]:
    issues: list[str] = []
    warnings: list[str] = []
    for enum_name, required_values in REQUIRED_ENUM_VALUES.items():
        present = labels_by_name.get(enum_name)
        if present is None:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing = sorted(required_values - present)
        if missing:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing)}")
    return issues, warnings


def _alembic_findings(engine: Engine) -> tuple[list[str], list[str]]:
    try:
        with engine.connect() as connection:
            row = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    except SQLAlchemyError as exc:
        return [f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}"], []

    version = str(row).strip() if row is not None else ""
    if not version:
        return ["ALEMBIC_VERSION_EMPTY"], []
    if version != EXPECTED_ALEMBIC_HEAD:
        return [], [f"ALEMBIC_VERSION_UNEXPECTED:{version}"]
    return [], []


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    """Check that the connected database carries the timecard schema.

    Missing tables, columns or enum values are issues and fail the guard.
    Enums that cannot be listed and an alembic head other than the one this
    build ships with are reported as warnings.
    """
    checked_at_utc = datetime.now(timezone.utc)
    try:
        inspector = inspect(engine)
    except SQLAlchemyError as exc:
        return SchemaGuardResult(
            ok=False,
            checked_at_utc=checked_at_utc,
            issues=[f"DATABASE_UNREACHABLE:{exc.__class__.__name__}"],
        )

    issues = _missing_columns(inspector)
    labels_by_name, warnings = _enum_labels(inspector)
    enum_issues, enum_warnings = _enum_findings(labels_by_name)
    alembic_issues, alembic_warnings = _alembic_findings(engine)
    issues += enum_issues + alembic_issues
    warnings += enum_warnings + alembic_warnings

    return SchemaGuardResult(
        ok=not issues,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
