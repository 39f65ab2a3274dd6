from __future__ import annotations

from stokstak.infrastructure.repositories.base import BaseRepository


class WorkflowEventRepository(BaseRepository):
    """Append-only audit trail of a purchase request."""

    def add_event(
        self,
        db,
        *,
        request_id: int,
        performed_by: str,
        event_type: str,
        occurred_at: str,
        item_id: int | None = None,
        from_status: str | None = None,
        to_status: str | None = None,
        comment: str | None = None,
    ) -> int:
        return self.insert_returning_id(
            db,
            """
            INSERT INTO purchase_request_events (
                request_id, item_id, performed_by, event_type,
                from_status, to_status, comment, occurred_at, tenant_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                request_id,
                item_id,
                performed_by,
                event_type,
                from_status,
                to_status,
                comment,
                occurred_at,
                self.tenant_id,
            ),
        )

    def list_for_request(self, db, request_id: int, *, limit: int = 500) -> list[dict]:
        return self.fetch_all(
            db,
            """
            SELECT id, request_id, item_id, performed_by, event_type,
                   from_status, to_status, comment, occurred_at, tenant_id
            FROM purchase_request_events
            WHERE request_id = ? AND tenant_id = ?
            ORDER BY occurred_at ASC, id ASC
            LIMIT ?
            """,
            (request_id, self.tenant_id, int(limit)),
        )
