from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict

from stokstak.errors import SystemError as AppSystemError
from stokstak.infrastructure.repositories.purchasing import WorkflowEventRepository


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def append_event(
    db,
    *,
    tenant_id: str,
    request_id: int,
    performed_by: str,
    event_type: str,
    occurred_at: str,
    item_id: int | None = None,
    from_status: str | None = None,
    to_status: str | None = None,
    comment: str | None = None,
    persisted: Dict[str, Any] | None = None,
) -> int:
    """Appends one audit event after the guarded write has already committed.

    A failure here leaves the earlier write in place, so it is surfaced as a
    critical error whose payload says what was persisted.
    """
    try:
        event_id = WorkflowEventRepository(tenant_id=tenant_id).add_event(
            db,
            request_id=request_id,
            item_id=item_id,
            performed_by=performed_by,
            event_type=event_type,
            from_status=from_status,
            to_status=to_status,
            comment=comment,
            occurred_at=occurred_at,
        )
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.error(
            "workflow_event_write_failed",
            exc_info=True,
            extra={
                "tenant_id": tenant_id,
                "purchase_request_id": request_id,
                "item_id": item_id,
                "event_type": event_type,
                "to_status": to_status,
            },
        )
        payload: Dict[str, Any] = {"purchase_request_id": request_id, "event_type": event_type}
        payload.update(persisted or {})
        raise AppSystemError(
            code="event_log_write_failed",
            message_key="event_log_write_failed",
            http_status=500,
            critical=True,
            details=str(exc) or exc.__class__.__name__,
            payload=payload,
        ) from exc
    return event_id
