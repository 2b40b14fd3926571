from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kintai.models import AuditActorType, AuditLog

logger = logging.getLogger("kintai.audit")


def period_key(year: int | None, month: int | None) -> str | None:
    if year is None or month is None:
        return None
    return f"{year:04d}-{month:02d}"


def log_audit(
    db: Session,
    *,
    actor_type: AuditActorType,
    actor_id: str,
    action: str,
    success: bool,
    entity_type: str | None = None,
    entity_id: str | None = None,
    year: int | None = None,
    month: int | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> bool:
    """Store one audit row for a timecard action.

    The month the action touched is kept in ``details["period"]`` so approval
    history can be read per month. A failed write is logged and reported as
    ``False``; it never fails the request that triggered it.
    """
    period = period_key(year, month)
    stored_details = {**(details or {}), **({"period": period} if period else {})}
    db.add(
        AuditLog(
            ts_utc=datetime.now(timezone.utc),
            actor_type=actor_type,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            ip=ip,
            user_agent=user_agent,
            success=success,
            details=stored_details,
        )
    )
    context = {
        "request_id": request_id,
        "action": action,
        "actor_type": actor_type.value,
        "actor_id": actor_id,
        "entity": f"{entity_type}:{entity_id}" if entity_type else None,
        "period": period,
        "success": success,
    }
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("audit_write_failed", extra=context)
        return False

    logger.info("audit_event", extra={**context, "details": stored_details})
    return True
