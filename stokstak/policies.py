from __future__ import annotations

from typing import Iterable, Set

from flask import g

from stokstak.errors import PermissionError as AppPermissionError
from stokstak.errors import ValidationError
from stokstak.purchasing.role_gate import ROLE_MEMBER, ROLES


VALID_ROLES: Set[str] = set(ROLES)


def normalize_role(role: str | None, default: str = ROLE_MEMBER) -> str:
    normalized = str(role or "").strip().lower()
    if normalized in VALID_ROLES:
        return normalized
    return default if default in VALID_ROLES else ""


def parse_role(role: str | None) -> str:
    """Strict variant used at input boundaries: unknown roles are rejected, not defaulted."""
    normalized = normalize_role(role, default="")
    if normalized:
        return normalized
    raise ValidationError(
        code="role_invalid",
        message_key="role_invalid",
        payload={"role": str(role or "")},
    )


def current_role() -> str:
    return normalize_role(getattr(g, "actor_role", None))


def normalize_allowed_roles(roles: Iterable[str]) -> Set[str]:
    return {role for role in (normalize_role(raw, default="") for raw in roles) if role}


def has_any_role(role: str | None, allowed_roles: Iterable[str]) -> bool:
    normalized_role = normalize_role(role)
    allowed = normalize_allowed_roles(allowed_roles)
    return not allowed or normalized_role in allowed


def require_roles(*allowed_roles: str, role: str | None = None) -> str:
    normalized_role = normalize_role(role) if role is not None else current_role()
    if has_any_role(normalized_role, allowed_roles):
        return normalized_role
    raise AppPermissionError(
        code="permission_denied",
        message_key="permission_denied",
        payload={"required_roles": sorted(normalize_allowed_roles(allowed_roles))},
    )
