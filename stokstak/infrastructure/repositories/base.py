from __future__ import annotations

from typing import Any, Sequence


class TenantScopeRequiredError(ValueError):
    """Raised when a repository is built without a tenant to scope its queries."""


class BaseRepository:
    """Every statement issued by a subclass binds ``self.tenant_id``."""

    def __init__(self, *, tenant_id: str | None = None) -> None:
        scope = str(tenant_id or "").strip()
        if not scope:
            raise TenantScopeRequiredError("tenant_id is required for repository access")
        self.tenant_id = scope

    def fetch_one(self, db, sql: str, params: Sequence[Any]) -> dict | None:
        row = db.execute(sql, tuple(params)).fetchone()
        return dict(row) if row else None

    def fetch_all(self, db, sql: str, params: Sequence[Any]) -> list[dict]:
        return [dict(row) for row in db.execute(sql, tuple(params)).fetchall()]

    def insert_returning_id(self, db, sql: str, params: Sequence[Any]) -> int:
        row = db.execute(sql, tuple(params)).fetchone()
        return int(row["id"] if isinstance(row, dict) else row[0])

    @staticmethod
    def touched_one(cursor) -> bool:
        return int(cursor.rowcount or 0) == 1
