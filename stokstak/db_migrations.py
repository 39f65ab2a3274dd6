from __future__ import annotations

from pathlib import Path

import click
from alembic import command
from alembic.config import Config as AlembicConfig
from flask import Flask

from stokstak.db import get_db
from stokstak.errors import ValidationError
from stokstak.membership import MembershipOracle
from stokstak.policies import parse_role


_SQLALCHEMY_PREFIXES = ("postgresql://", "postgresql+", "sqlite://", "sqlite+pysqlite://")


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def to_sqlalchemy_url(raw_db_path: str) -> str:
    """Turn DB_PATH (a file path or a database URL) into a URL SQLAlchemy accepts."""
    raw = (raw_db_path or "").strip()
    if not raw:
        raise RuntimeError("DB_PATH is not set for migrations.")
    if raw.startswith("postgres://"):
        raw = "postgresql://" + raw[len("postgres://") :]
    if raw.startswith(_SQLALCHEMY_PREFIXES):
        return raw
    return "sqlite:///" + Path(raw).expanduser().resolve().as_posix()


def build_alembic_config(app: Flask) -> AlembicConfig:
    root = _project_root()
    alembic_ini = root / "alembic.ini"
    if not alembic_ini.exists():
        raise RuntimeError("alembic.ini not found at the project root.")

    alembic_cfg = AlembicConfig(str(alembic_ini))
    alembic_cfg.set_main_option("script_location", str((root / "migrations").as_posix()))
    alembic_cfg.set_main_option("sqlalchemy.url", to_sqlalchemy_url(app.config["DB_PATH"]))
    alembic_cfg.attributes["configured_by_app"] = True
    return alembic_cfg


def register_db_cli(app: Flask) -> None:
    @app.cli.group("db")
    def db_group() -> None:
        """Schema migrations (Alembic)."""

    @db_group.command("upgrade")
    @click.argument("revision", required=False, default="head")
    def db_upgrade(revision: str) -> None:
        cfg = build_alembic_config(app)
        command.upgrade(cfg, revision)
        click.echo(f"Upgraded to {revision}.")

    @db_group.command("downgrade")
    @click.argument("revision", required=False, default="-1")
    def db_downgrade(revision: str) -> None:
        cfg = build_alembic_config(app)
        command.downgrade(cfg, revision)
        click.echo(f"Downgraded to {revision}.")

    @db_group.command("current")
    def db_current() -> None:
        cfg = build_alembic_config(app)
        command.current(cfg, verbose=True)


def register_members_cli(app: Flask) -> None:
    @app.cli.group("members")
    def members_group() -> None:
        """Company membership management."""

    @members_group.command("grant")
    @click.argument("tenant_id")
    @click.argument("user_id")
    @click.argument("role")
    @click.option("--display-name", default=None, help="Name shown next to the user's actions.")
    def members_grant(tenant_id: str, user_id: str, role: str, display_name: str | None) -> None:
        try:
            normalized_role = parse_role(role)
        except ValidationError as exc:
            raise click.BadParameter(exc.user_message(), param_hint="ROLE") from exc
        MembershipOracle(get_db).grant(tenant_id.strip(), user_id.strip(), normalized_role, display_name)
        click.echo(f"{user_id} is now {normalized_role} in {tenant_id}.")
