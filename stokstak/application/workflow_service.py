from __future__ import annotations

import logging

from stokstak.application.event_log import Clock, append_event, format_timestamp, utc_now
from stokstak.domain.contracts import clean_text, parse_request_status
from stokstak.domain.records import PurchaseRequest
from stokstak.errors import ConflictError, NotFoundError, ValidationError
from stokstak.errors import PermissionError as AppPermissionError
from stokstak.infrastructure.repositories.purchasing import PurchaseRequestRepository
from stokstak.observability import observe_workflow_conflict, observe_workflow_transition
from stokstak.purchasing.role_gate import transition_allowed
from stokstak.purchasing.statuses import EVENT_STATUS_CHANGE, REJECTED, STAGE_ATTRIBUTION


logger = logging.getLogger(__name__)


class WorkflowService:
    """Moves a purchase request between request-level statuses."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utc_now

    def request_transition(
        self,
        db,
        *,
        tenant_id: str,
        request_id: int,
        actor_id: str,
        actor_role: str,
        target_status: str,
        comment: str | None = None,
    ) -> PurchaseRequest:
        requests = PurchaseRequestRepository(tenant_id=tenant_id)
        row = requests.get_by_id(db, request_id)
        if row is None:
            raise NotFoundError(
                code="purchase_request_not_found",
                message_key="purchase_request_not_found",
                payload={"purchase_request_id": request_id},
            )

        target = parse_request_status(target_status)
        current = str(row["status"])
        note = clean_text(comment)

        if target == REJECTED and not note:
            raise ValidationError(
                code="rejection_reason_required",
                message_key="rejection_reason_required",
            )

        if not transition_allowed(actor_role, current, target):
            logger.warning(
                "purchase_request_transition_denied",
                extra={
                    "tenant_id": tenant_id,
                    "purchase_request_id": request_id,
                    "actor_id": actor_id,
                    "actor_role": actor_role,
                    "from_status": current,
                    "to_status": target,
                },
            )
            raise AppPermissionError(
                code="transition_not_allowed",
                message_key="transition_not_allowed",
                payload={"from_status": current, "to_status": target},
            )

        occurred_at = format_timestamp(self._clock())
        fields = {}
        if target in STAGE_ATTRIBUTION:
            by_column, at_column = STAGE_ATTRIBUTION[target]
            fields[by_column] = actor_id
            fields[at_column] = occurred_at

        updated = requests.update_status_if(
            db,
            request_id,
            expected_status=current,
            status=target,
            fields=fields,
        )
        if not updated:
            db.rollback()
            observe_workflow_conflict()
            logger.warning(
                "purchase_request_transition_conflict",
                extra={
                    "tenant_id": tenant_id,
                    "purchase_request_id": request_id,
                    "expected_status": current,
                    "to_status": target,
                },
            )
            raise ConflictError(payload={"purchase_request_id": request_id, "expected_status": current})
        db.commit()
        observe_workflow_transition(current, target)

        append_event(
            db,
            tenant_id=tenant_id,
            request_id=request_id,
            performed_by=actor_id,
            event_type=EVENT_STATUS_CHANGE,
            from_status=current,
            to_status=target,
            comment=note,
            occurred_at=occurred_at,
            persisted={"status_persisted": True, "status": target},
        )

        logger.info(
            "purchase_request_transitioned",
            extra={
                "tenant_id": tenant_id,
                "purchase_request_id": request_id,
                "actor_id": actor_id,
                "from_status": current,
                "to_status": target,
            },
        )
        return PurchaseRequest.from_row(requests.get_by_id(db, request_id))
