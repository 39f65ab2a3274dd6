from __future__ import annotations

from flask import g, session

from stokstak.errors import UserActionError


def normalize_tenant_id(value: str | None) -> str | None:
    tenant_id = str(value or "").strip()
    return tenant_id or None


def current_tenant_id() -> str | None:
    return normalize_tenant_id(getattr(g, "tenant_id", None)) or normalize_tenant_id(session.get("tenant_id"))


def require_tenant_id() -> str:
    tenant_id = current_tenant_id()
    if tenant_id:
        return tenant_id
    raise UserActionError(
        code="tenant_required",
        message_key="tenant_required",
        http_status=400,
        critical=False,
    )
