from __future__ import annotations

from typing import Any

from stokstak.infrastructure.repositories.base import BaseRepository


class PurchaseRequestItemRepository(BaseRepository):
    def create(
        self,
        db,
        *,
        request_id: int,
        description: str,
        quantity: float,
        unit: str,
        item_type: str,
        application_location: str | None,
        estimated_unit_price: float | None,
        status: str = "pending",
    ) -> int:
        return self.insert_returning_id(
            db,
            """
            INSERT INTO purchase_request_items (
                request_id, description, quantity, unit, item_type,
                application_location, estimated_unit_price, status, tenant_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (
                request_id,
                description,
                quantity,
                unit,
                item_type,
                application_location,
                estimated_unit_price,
                status,
                self.tenant_id,
            ),
        )

    def get_by_id(self, db, item_id: int) -> dict | None:
        return self.fetch_one(
            db,
            "SELECT * FROM purchase_request_items WHERE id = ? AND tenant_id = ? LIMIT 1",
            (item_id, self.tenant_id),
        )

    def list_for_request(self, db, request_id: int) -> list[dict]:
        return self.fetch_all(
            db,
            """
            SELECT *
            FROM purchase_request_items
            WHERE request_id = ? AND tenant_id = ?
            ORDER BY id ASC
            """,
            (request_id, self.tenant_id),
        )

    def update_decision_if(
        self,
        db,
        item_id: int,
        *,
        expected_status: str,
        fields: dict[str, Any],
        expected_request_status: str | None = None,
    ) -> bool:
        """False when the item status, or the parent request status when given, changed since it was read."""
        assignments = ", ".join(f"{column} = ?" for column in fields)
        params: list[Any] = [*fields.values(), item_id, self.tenant_id, expected_status]
        parent_guard = ""
        if expected_request_status is not None:
            parent_guard = """
              AND EXISTS (
                  SELECT 1 FROM purchase_requests
                  WHERE purchase_requests.id = purchase_request_items.request_id
                    AND purchase_requests.tenant_id = purchase_request_items.tenant_id
                    AND purchase_requests.status = ?
              )
            """
            params.append(expected_request_status)
        cursor = db.execute(
            f"""
            UPDATE purchase_request_items
            SET {assignments}, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND tenant_id = ? AND status = ?
            {parent_guard}
            """,
            params,
        )
        return self.touched_one(cursor)

    def link_inventory_item(self, db, item_id: int, inventory_item_id: int) -> None:
        db.execute(
            """
            UPDATE purchase_request_items
            SET linked_inventory_item_id = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND tenant_id = ?
            """,
            (inventory_item_id, item_id, self.tenant_id),
        )
