from __future__ import annotations

from stokstak.infrastructure.repositories.base import BaseRepository


_MEMBERSHIP_COLUMNS = "user_id, role, display_name, tenant_id"


class MembershipRepository(BaseRepository):
    def ensure_tenant(self, db, name: str | None = None) -> None:
        if self.fetch_one(db, "SELECT id FROM tenants WHERE id = ? LIMIT 1", (self.tenant_id,)):
            return
        db.execute(
            "INSERT INTO tenants (id, name) VALUES (?, ?)",
            (self.tenant_id, name or self.tenant_id),
        )

    def find(self, db, user_id: str) -> dict | None:
        return self.fetch_one(
            db,
            f"""
            SELECT {_MEMBERSHIP_COLUMNS}
            FROM memberships
            WHERE user_id = ? AND tenant_id = ?
            LIMIT 1
            """,
            (user_id, self.tenant_id),
        )

    def upsert(self, db, *, user_id: str, role: str, display_name: str | None = None) -> None:
        if self.find(db, user_id):
            db.execute(
                """
                UPDATE memberships
                SET role = ?, display_name = COALESCE(?, display_name), updated_at = CURRENT_TIMESTAMP
                WHERE user_id = ? AND tenant_id = ?
                """,
                (role, display_name, user_id, self.tenant_id),
            )
            return
        db.execute(
            f"INSERT INTO memberships ({_MEMBERSHIP_COLUMNS}) VALUES (?, ?, ?, ?)",
            (user_id, role, display_name, self.tenant_id),
        )

    def list_all(self, db) -> list[dict]:
        return self.fetch_all(
            db,
            f"SELECT {_MEMBERSHIP_COLUMNS} FROM memberships WHERE tenant_id = ? ORDER BY user_id ASC",
            (self.tenant_id,),
        )
