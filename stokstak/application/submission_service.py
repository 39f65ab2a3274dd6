from __future__ import annotations

import logging
from typing import Any, Dict, List

from stokstak.application.event_log import Clock, format_timestamp, utc_now
from stokstak.domain.contracts import PurchaseRequestCreateInput
from stokstak.domain.records import PurchaseRequest, RequestLineItem, WorkflowEvent
from stokstak.errors import NotFoundError, ValidationError
from stokstak.infrastructure.repositories.purchasing import (
    PurchaseRequestItemRepository,
    PurchaseRequestRepository,
    WorkflowEventRepository,
)
from stokstak.purchasing.role_gate import available_actions
from stokstak.purchasing.statuses import ITEM_PENDING, SUBMITTED
from stokstak.ui_strings import event_label, request_status_label


logger = logging.getLogger(__name__)


class SubmissionService:
    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or utc_now

    def create_purchase_request(
        self,
        db,
        *,
        tenant_id: str,
        actor_id: str,
        create_input: PurchaseRequestCreateInput,
    ) -> PurchaseRequest:
        if not create_input.items:
            raise ValidationError(code="items_required", message_key="items_required")

        requests = PurchaseRequestRepository(tenant_id=tenant_id)
        items = PurchaseRequestItemRepository(tenant_id=tenant_id)
        try:
            request_id = requests.create(
                db,
                number=create_input.number,
                project_ref=create_input.project_ref,
                requested_by=actor_id,
                status=SUBMITTED,
                needed_by=create_input.needed_by,
                notes=create_input.notes,
                created_at=format_timestamp(self._clock()),
            )
            for line in create_input.items:
                items.create(
                    db,
                    request_id=request_id,
                    description=line.description,
                    quantity=line.quantity,
                    unit=line.unit,
                    item_type=line.item_type,
                    application_location=line.application_location,
                    estimated_unit_price=line.estimated_unit_price,
                    status=ITEM_PENDING,
                )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            "purchase_request_created",
            extra={
                "tenant_id": tenant_id,
                "purchase_request_id": request_id,
                "actor_id": actor_id,
                "items": len(create_input.items),
            },
        )
        return PurchaseRequest.from_row(requests.get_by_id(db, request_id))

    def list_requests(
        self,
        db,
        *,
        tenant_id: str,
        status: str | None = None,
        limit: int = 200,
    ) -> List[Dict[str, Any]]:
        rows = PurchaseRequestRepository(tenant_id=tenant_id).list_summary(db, status=status, limit=limit)
        for row in rows:
            row["status_label"] = request_status_label(row.get("status"))
        return rows

    def get_request(self, db, *, tenant_id: str, request_id: int) -> PurchaseRequest:
        row = PurchaseRequestRepository(tenant_id=tenant_id).get_by_id(db, request_id)
        if row is None:
            raise NotFoundError(
                code="purchase_request_not_found",
                message_key="purchase_request_not_found",
                payload={"purchase_request_id": request_id},
            )
        return PurchaseRequest.from_row(row)

    def list_events(self, db, *, tenant_id: str, request_id: int) -> List[WorkflowEvent]:
        self.get_request(db, tenant_id=tenant_id, request_id=request_id)
        rows = WorkflowEventRepository(tenant_id=tenant_id).list_for_request(db, request_id)
        events = [WorkflowEvent.from_row(row) for row in rows]
        events.sort(key=lambda event: (event.occurred_at, event.id))
        return events

    def get_request_detail(
        self,
        db,
        *,
        tenant_id: str,
        request_id: int,
        actor_role: str | None = None,
    ) -> Dict[str, Any]:
        purchase_request = self.get_request(db, tenant_id=tenant_id, request_id=request_id)
        items = [
            RequestLineItem.from_row(row)
            for row in PurchaseRequestItemRepository(tenant_id=tenant_id).list_for_request(db, request_id)
        ]
        events = self.list_events(db, tenant_id=tenant_id, request_id=request_id)

        priced = [item.estimated_total for item in items if item.estimated_total is not None]
        return {
            "request": purchase_request.to_payload(),
            "status_label": request_status_label(purchase_request.status),
            "items": [item.to_payload() for item in items],
            "events": [dict(event.to_payload(), label=event_label(event.event_type)) for event in events],
            "estimated_total": round(sum(priced), 2) if priced else None,
            "available_actions": available_actions(actor_role, purchase_request.status),
        }
