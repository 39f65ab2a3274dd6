from __future__ import annotations

import logging
from typing import Any, Dict

from stokstak.application.event_log import Clock, append_event, format_timestamp, utc_now
from stokstak.domain.contracts import ApproveDecision, Decision, RejectDecision, clean_text
from stokstak.domain.records import RequestLineItem
from stokstak.errors import ConflictError, NotFoundError, ValidationError
from stokstak.errors import PermissionError as AppPermissionError
from stokstak.infrastructure.repositories.purchasing import (
    PurchaseRequestItemRepository,
    PurchaseRequestRepository,
)
from stokstak.observability import observe_item_decision, observe_workflow_conflict
from stokstak.purchasing.role_gate import can_decide_item
from stokstak.purchasing.statuses import (
    EVENT_ITEM_APPROVED,
    EVENT_ITEM_REJECTED,
    ITEM_APPROVED,
    ITEM_REJECTED,
)


logger = logging.getLogger(__name__)


def _display_quantity(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


class AdjudicationService:
    """Approves or rejects individual line items, independently of request progress."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utc_now

    def decide_item(
        self,
        db,
        *,
        tenant_id: str,
        item_id: int,
        actor_id: str,
        actor_role: str,
        decision: Decision,
        request_id: int | None = None,
    ) -> RequestLineItem:
        items = PurchaseRequestItemRepository(tenant_id=tenant_id)
        item_row = items.get_by_id(db, item_id)
        if item_row is None or (request_id is not None and int(item_row["request_id"]) != int(request_id)):
            raise NotFoundError(
                code="item_not_found",
                message_key="item_not_found",
                payload={"item_id": item_id},
            )
        item = RequestLineItem.from_row(item_row)

        parent = PurchaseRequestRepository(tenant_id=tenant_id).get_by_id(db, item.request_id)
        if parent is None:
            raise NotFoundError(
                code="purchase_request_not_found",
                message_key="purchase_request_not_found",
                payload={"purchase_request_id": item.request_id},
            )

        request_status = str(parent["status"])
        if not can_decide_item(actor_role, request_status):
            logger.warning(
                "item_decision_denied",
                extra={
                    "tenant_id": tenant_id,
                    "item_id": item_id,
                    "actor_id": actor_id,
                    "actor_role": actor_role,
                    "request_status": request_status,
                },
            )
            raise AppPermissionError(
                code="item_decision_not_allowed",
                message_key="item_decision_not_allowed",
                payload={"request_status": request_status},
            )

        if isinstance(decision, ApproveDecision):
            fields, event_type, comment = self._approve_fields(item, decision)
        elif isinstance(decision, RejectDecision):
            fields, event_type, comment = self._reject_fields(decision)
        else:
            raise ValidationError(code="decision_invalid", message_key="decision_invalid")

        updated = items.update_decision_if(
            db,
            item_id,
            expected_status=item.status,
            fields=fields,
            expected_request_status=request_status,
        )
        if not updated:
            db.rollback()
            observe_workflow_conflict()
            logger.warning(
                "item_decision_conflict",
                extra={
                    "tenant_id": tenant_id,
                    "purchase_request_id": item.request_id,
                    "item_id": item_id,
                    "expected_status": item.status,
                    "expected_request_status": request_status,
                },
            )
            raise ConflictError(
                payload={
                    "item_id": item_id,
                    "expected_status": item.status,
                    "expected_request_status": request_status,
                }
            )
        db.commit()
        observe_item_decision(decision.kind)

        append_event(
            db,
            tenant_id=tenant_id,
            request_id=item.request_id,
            item_id=item_id,
            performed_by=actor_id,
            event_type=event_type,
            from_status=item.status,
            to_status=fields["status"],
            comment=comment,
            occurred_at=format_timestamp(self._clock()),
            persisted={"decision_persisted": True, "item_status": fields["status"]},
        )

        logger.info(
            "item_decided",
            extra={
                "tenant_id": tenant_id,
                "purchase_request_id": item.request_id,
                "item_id": item_id,
                "actor_id": actor_id,
                "decision": decision.kind,
            },
        )
        return RequestLineItem.from_row(items.get_by_id(db, item_id))

    @staticmethod
    def _approve_fields(item: RequestLineItem, decision: ApproveDecision) -> tuple[Dict[str, Any], str, str | None]:
        quantity = float(decision.quantity)
        if quantity <= 0 or quantity > item.quantity:
            raise ValidationError(
                code="quantity_out_of_range",
                message_key="quantity_out_of_range",
                payload={"max_quantity": _display_quantity(item.quantity)},
            )

        fields: Dict[str, Any] = {"status": ITEM_APPROVED, "approved_quantity": quantity}
        resubmit_comment = clean_text(decision.resubmit_comment)
        if item.status == ITEM_REJECTED:
            if not resubmit_comment:
                raise ValidationError(
                    code="resubmit_comment_required",
                    message_key="resubmit_comment_required",
                )
            fields["resubmit_comment"] = resubmit_comment
        return fields, EVENT_ITEM_APPROVED, resubmit_comment

    @staticmethod
    def _reject_fields(decision: RejectDecision) -> tuple[Dict[str, Any], str, str | None]:
        comment = clean_text(decision.comment)
        if not comment:
            raise ValidationError(
                code="reject_comment_required",
                message_key="reject_comment_required",
            )
        fields: Dict[str, Any] = {
            "status": ITEM_REJECTED,
            "approved_quantity": 0,
            "reject_comment": comment,
        }
        return fields, EVENT_ITEM_REJECTED, comment
