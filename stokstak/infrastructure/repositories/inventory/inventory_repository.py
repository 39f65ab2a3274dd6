from __future__ import annotations

from stokstak.infrastructure.repositories.base import BaseRepository


class InventoryRepository(BaseRepository):
    def get_by_id(self, db, inventory_item_id: int) -> dict | None:
        return self.fetch_one(
            db,
            "SELECT * FROM inventory_items WHERE id = ? AND tenant_id = ? LIMIT 1",
            (inventory_item_id, self.tenant_id),
        )

    def set_quantity(self, db, inventory_item_id: int, quantity: float) -> bool:
        cursor = db.execute(
            """
            UPDATE inventory_items
            SET quantity = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND tenant_id = ?
            """,
            (quantity, inventory_item_id, self.tenant_id),
        )
        return self.touched_one(cursor)

    def create(
        self,
        db,
        *,
        name: str,
        quantity: float,
        description: str | None = None,
        location: str | None = None,
        unit_cost: float | None = None,
        acquired_on: str | None = None,
        created_by: str | None = None,
    ) -> int:
        return self.insert_returning_id(
            db,
            """
            INSERT INTO inventory_items (
                name, description, quantity, location, unit_cost, acquired_on, created_by, tenant_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (name, description, quantity, location, unit_cost, acquired_on, created_by, self.tenant_id),
        )

    def list_all(self, db, limit: int = 500) -> list[dict]:
        return self.fetch_all(
            db,
            """
            SELECT id, name, description, quantity, location, unit_cost, acquired_on, created_by
            FROM inventory_items
            WHERE tenant_id = ?
            ORDER BY name ASC, id ASC
            LIMIT ?
            """,
            (self.tenant_id, int(limit)),
        )
