import sqlite3
from typing import Iterable

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def _connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 is not installed.")
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return Database("sqlite", conn)


def get_db():
    if "db" not in g:
        db_path = current_app.config["DB_PATH"]
        g.db = _connect_database(db_path)
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def backend_name(db_path: str | None) -> str:
    return "postgres" if str(db_path or "").lower().startswith("postgres") else "sqlite"


SCHEMA_TABLES = [
    "purchase_request_events",
    "purchase_request_items",
    "purchase_requests",
    "inventory_items",
    "memberships",
    "tenants",
]

_REQUEST_STATUS_CHECK = (
    "status IN ('submitted','pm_approved','president_approved','purchased','received','rejected')"
)
_ITEM_STATUS_CHECK = "status IN ('pending','approved','rejected')"
_EVENT_TYPE_CHECK = "event_type IN ('status_change','item_approved','item_rejected','stocked')"
_ROLE_CHECK = "role IN ('member','pm','president','purchaser','admin')"

# Column types that differ between the two backends.
_DIALECTS = {
    "sqlite": {"pk": "INTEGER PRIMARY KEY AUTOINCREMENT", "real": "REAL", "stamp": "TEXT"},
    "postgres": {"pk": "SERIAL PRIMARY KEY", "real": "DOUBLE PRECISION", "stamp": "TIMESTAMP"},
}

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS tenants (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        created_at {stamp} NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memberships (
        id {pk},
        tenant_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'member' CHECK ({role_check}),
        display_name TEXT,
        created_at {stamp} NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at {stamp} NOT NULL DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (tenant_id, user_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS inventory_items (
        id {pk},
        tenant_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        quantity {real} NOT NULL DEFAULT 0,
        location TEXT,
        unit_cost {real},
        acquired_on TEXT,
        created_by TEXT,
        created_at {stamp} NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at {stamp} NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS purchase_requests (
        id {pk},
        tenant_id TEXT NOT NULL,
        number TEXT,
        project_ref TEXT,
        requested_by TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'submitted' CHECK ({request_status_check}),
        needed_by TEXT,
        notes TEXT,
        pm_approved_by TEXT,
        pm_approved_at TEXT,
        president_approved_by TEXT,
        president_approved_at TEXT,
        purchased_by TEXT,
        purchased_at TEXT,
        received_by TEXT,
        received_at TEXT,
        created_at TEXT NOT NULL,
        updated_at {stamp} NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS purchase_request_items (
        id {pk},
        tenant_id TEXT NOT NULL,
        request_id INTEGER NOT NULL REFERENCES purchase_requests(id),
        description TEXT NOT NULL,
        quantity {real} NOT NULL CHECK (quantity > 0),
        unit TEXT NOT NULL DEFAULT 'ea',
        item_type TEXT NOT NULL DEFAULT 'tool',
        application_location TEXT,
        estimated_unit_price {real} CHECK (estimated_unit_price IS NULL OR estimated_unit_price >= 0),
        status TEXT NOT NULL DEFAULT 'pending' CHECK ({item_status_check}),
        approved_quantity {real},
        reject_comment TEXT,
        resubmit_comment TEXT,
        linked_inventory_item_id INTEGER,
        created_at {stamp} NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at {stamp} NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS purchase_request_events (
        id {pk},
        tenant_id TEXT NOT NULL,
        request_id INTEGER NOT NULL REFERENCES purchase_requests(id),
        item_id INTEGER,
        performed_by TEXT NOT NULL,
        event_type TEXT NOT NULL CHECK ({event_type_check}),
        from_status TEXT,
        to_status TEXT,
        comment TEXT,
        occurred_at TEXT NOT NULL
    )
    """,
)

_INDEXES = (
    ("idx_purchase_requests_tenant_status", "purchase_requests", "tenant_id, status"),
    ("idx_purchase_request_items_tenant_request", "purchase_request_items", "tenant_id, request_id"),
    ("idx_purchase_request_events_tenant_request", "purchase_request_events", "tenant_id, request_id, occurred_at"),
    ("idx_inventory_items_tenant", "inventory_items", "tenant_id"),
)


def schema_statements(backend: str) -> list[str]:
    """DDL for a fresh database, rendered for `backend` ("sqlite" or "postgres")."""
    params = {
        **_DIALECTS[backend],
        "role_check": _ROLE_CHECK,
        "request_status_check": _REQUEST_STATUS_CHECK,
        "item_status_check": _ITEM_STATUS_CHECK,
        "event_type_check": _EVENT_TYPE_CHECK,
    }
    statements = [statement.format(**params) for statement in _SCHEMA]
    statements.extend(
        f"CREATE INDEX IF NOT EXISTS {name} ON {table} ({columns})" for name, table, columns in _INDEXES
    )
    return statements


def init_db():
    db = get_db()
    for statement in schema_statements(db.backend):
        db.execute(statement)
    db.commit()


def table_exists(db: Database, table: str) -> bool:
    if db.backend == "postgres":
        sql = "SELECT 1 FROM information_schema.tables WHERE table_schema = 'public' AND table_name = ?"
    else:
        sql = "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?"
    return db.execute(sql, (table,)).fetchone() is not None
