from __future__ import annotations

import logging
from typing import Callable

from stokstak.errors import PermissionError as AppPermissionError
from stokstak.infrastructure.repositories import MembershipRepository
from stokstak.policies import normalize_role


logger = logging.getLogger(__name__)


class MembershipOracle:
    """Resolves an actor's role inside a tenant from the memberships table."""

    def __init__(self, db_factory: Callable[[], object]) -> None:
        self._db_factory = db_factory

    def role_of(self, tenant_id: str, actor_id: str) -> str:
        row = MembershipRepository(tenant_id=tenant_id).find(self._db_factory(), actor_id)
        if row is None:
            logger.warning(
                "membership_missing",
                extra={"tenant_id": tenant_id, "actor_id": actor_id},
            )
            raise AppPermissionError(
                code="membership_required",
                message_key="membership_required",
                http_status=403,
                critical=False,
            )
        return normalize_role(row.get("role"))

    def grant(self, tenant_id: str, actor_id: str, role: str, display_name: str | None = None) -> None:
        db = self._db_factory()
        repo = MembershipRepository(tenant_id=tenant_id)
        repo.ensure_tenant(db)
        repo.upsert(db, user_id=actor_id, role=role, display_name=display_name)
        db.commit()
