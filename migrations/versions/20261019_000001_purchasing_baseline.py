"""Purchasing workflow baseline from stokstak.db

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op

from stokstak.db import SCHEMA_TABLES, schema_statements


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    connection = op.get_bind()
    backend = "postgres" if connection.dialect.name.lower().startswith("postgres") else "sqlite"
    for statement in schema_statements(backend):
        connection.exec_driver_sql(statement)


def downgrade() -> None:
    for table in SCHEMA_TABLES:
        op.execute(f"DROP TABLE IF EXISTS {table}")
