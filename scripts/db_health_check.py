#!/usr/bin/env python
from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import create_engine, text

from kintai.services.schema_guard import EXPECTED_ALEMBIC_HEAD
from kintai.settings import get_settings

REQUIRED_TABLES = ("monthly_settings", "daily_records", "approvals", "annual_holidays", "audit_logs")


def run() -> dict:
    engine = create_engine(get_settings().database_url, pool_pre_ping=True)
    report: dict = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "checks": [],
    }

    def add(name: str, status: str, details: dict) -> None:
        report["checks"].append({"name": name, "status": status, "details": details})

    with engine.connect() as conn:
        tables = set(
            conn.execute(
                text(
                    """
                    select table_name
                    from information_schema.tables
                    where table_schema='public'
                    """
                )
            ).scalars()
        )

        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [
                row[0]
                for row in conn.execute(text("select version_num from alembic_version")).fetchall()
            ]
        add("alembic_version", "ok" if current_versions else "fail", {"current": current_versions})
        add(
            "migration_up_to_date",
            "ok" if EXPECTED_ALEMBIC_HEAD in current_versions else "warn",
            {"expected_head": EXPECTED_ALEMBIC_HEAD, "current": current_versions},
        )

        missing_tables = [table for table in REQUIRED_TABLES if table not in tables]
        add("missing_tables", "fail" if missing_tables else "ok", {"tables": missing_tables})

        if "approvals" in tables:
            approved_without_approver = conn.execute(
                text(
                    """
                    select id
                    from approvals
                    where status = 'approved'
                      and (approved_by is null or approved_at is null)
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "approved_without_approver",
                "fail" if approved_without_approver else "ok",
                {"sample_ids": [row[0] for row in approved_without_approver]},
            )

            pending_without_request = conn.execute(
                text(
                    """
                    select id
                    from approvals
                    where status = 'pending'
                      and requested_at is null
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "pending_without_requested_at",
                "warn" if pending_without_request else "ok",
                {"sample_ids": [row[0] for row in pending_without_request]},
            )

        if "daily_records" in tables:
            negative_minutes = conn.execute(
                text(
                    """
                    select id
                    from daily_records
                    where late_time < 0
                       or early_leave_time < 0
                       or night_overtime < 0
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "daily_record_negative_minutes",
                "fail" if negative_minutes else "ok",
                {"sample_ids": [row[0] for row in negative_minutes]},
            )

            crossing_midnight = conn.execute(
                text(
                    """
                    select id
                    from daily_records
                    where start_time is not null
                      and end_time is not null
                      and end_time < start_time
                    limit 20
                    """
                )
            ).fetchall()
            add(
                "daily_record_end_before_start",
                "warn" if crossing_midnight else "ok",
                {"sample_ids": [row[0] for row in crossing_midnight]},
            )

    return report


if __name__ == "__main__":
    print(json.dumps(run(), ensure_ascii=False, indent=2))
