from __future__ import annotations

from typing import Any

from stokstak.infrastructure.repositories.base import BaseRepository


_SUMMARY_COLUMNS = "id, number, project_ref, requested_by, status, needed_by, created_at, tenant_id"


class PurchaseRequestRepository(BaseRepository):
    def create(
        self,
        db,
        *,
        number: str | None,
        project_ref: str | None,
        requested_by: str,
        status: str,
        needed_by: str | None,
        notes: str | None,
        created_at: str,
    ) -> int:
        return self.insert_returning_id(
            db,
            """
            INSERT INTO purchase_requests (
                number, project_ref, requested_by, status, needed_by, notes, created_at, tenant_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (number, project_ref, requested_by, status, needed_by, notes, created_at, self.tenant_id),
        )

    def get_by_id(self, db, purchase_request_id: int) -> dict | None:
        return self.fetch_one(
            db,
            "SELECT * FROM purchase_requests WHERE id = ? AND tenant_id = ? LIMIT 1",
            (purchase_request_id, self.tenant_id),
        )

    def update_status_if(
        self,
        db,
        purchase_request_id: int,
        *,
        expected_status: str,
        status: str,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """Writes only while the row still holds expected_status; False when it moved on."""
        values = {"status": status, **(fields or {})}
        assignments = ", ".join(f"{column} = ?" for column in values)
        cursor = db.execute(
            f"""
            UPDATE purchase_requests
            SET {assignments}, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND tenant_id = ? AND status = ?
            """,
            (*values.values(), purchase_request_id, self.tenant_id, expected_status),
        )
        return self.touched_one(cursor)

    def list_summary(self, db, *, status: str | None = None, limit: int = 200) -> list[dict]:
        where = "tenant_id = ?"
        params: list[Any] = [self.tenant_id]
        if status:
            where += " AND status = ?"
            params.append(status)
        params.append(int(limit))
        return self.fetch_all(
            db,
            f"""
            SELECT {_SUMMARY_COLUMNS}
            FROM purchase_requests
            WHERE {where}
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            params,
        )

    def count(self, db) -> int:
        row = self.fetch_one(
            db,
            "SELECT COUNT(*) AS total FROM purchase_requests WHERE tenant_id = ?",
            (self.tenant_id,),
        )
        return int(row["total"]) if row else 0
