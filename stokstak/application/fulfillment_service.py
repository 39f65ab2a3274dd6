from __future__ import annotations

import logging
from typing import List

from stokstak.application.event_log import Clock, append_event, format_timestamp, utc_now
from stokstak.domain.contracts import (
    FULFILLMENT_APPLIED,
    FULFILLMENT_FAILED,
    FULFILLMENT_SKIPPED,
    FulfillmentOutcome,
    FulfillmentReport,
)
from stokstak.domain.records import PurchaseRequest, RequestLineItem
from stokstak.errors import NotFoundError, ValidationError
from stokstak.infrastructure.repositories.purchasing import (
    PurchaseRequestItemRepository,
    PurchaseRequestRepository,
)
from stokstak.inventory.store import InventoryStore, InventoryStoreError, NewInventoryItem
from stokstak.observability import observe_fulfillment_item
from stokstak.purchasing.statuses import EVENT_STOCKED, ITEM_REJECTED, RECEIVED


logger = logging.getLogger(__name__)

STOCKED_COMMENT = "Items received into Stokstak inventory."

ACTION_INCREMENTED = "incremented"
ACTION_CREATED = "created"

LINK_PERSIST_FAILED = "link_persist_failed"


class FulfillmentService:
    """Receives the items of a `received` request into the inventory store.

    Linked inventory records are incremented, never overwritten, so running
    this twice adds the quantities twice. Each item is handled on its own: a
    store failure marks that item as failed and the walk continues.
    """

    def __init__(
        self,
        inventory_store: InventoryStore,
        *,
        max_items: int,
        clock: Clock | None = None,
    ) -> None:
        self._store = inventory_store
        self._clock = clock or utc_now
        self._max_items = max(1, int(max_items))

    def fulfill_to_inventory(
        self,
        db,
        *,
        tenant_id: str,
        request_id: int,
        actor_id: str,
    ) -> FulfillmentReport:
        row = PurchaseRequestRepository(tenant_id=tenant_id).get_by_id(db, request_id)
        if row is None:
            raise NotFoundError(
                code="purchase_request_not_found",
                message_key="purchase_request_not_found",
                payload={"purchase_request_id": request_id},
            )
        purchase_request = PurchaseRequest.from_row(row)
        if purchase_request.status != RECEIVED:
            raise ValidationError(
                code="request_not_received",
                message_key="request_not_received",
                payload={"status": purchase_request.status},
            )

        items_repo = PurchaseRequestItemRepository(tenant_id=tenant_id)
        items = [RequestLineItem.from_row(item) for item in items_repo.list_for_request(db, request_id)]
        if len(items) > self._max_items:
            raise ValidationError(
                code="fulfillment_too_large",
                message_key="fulfillment_too_large",
                payload={"max_items": self._max_items},
            )

        now = self._clock()
        acquired_on = now.date().isoformat()
        outcomes: List[FulfillmentOutcome] = []
        for item in items:
            outcome = self._fulfill_item(
                db,
                items_repo,
                tenant_id=tenant_id,
                purchase_request=purchase_request,
                item=item,
                actor_id=actor_id,
                acquired_on=acquired_on,
            )
            observe_fulfillment_item(outcome.result)
            outcomes.append(outcome)

        report = FulfillmentReport(request_id=request_id, outcomes=outcomes)
        append_event(
            db,
            tenant_id=tenant_id,
            request_id=request_id,
            performed_by=actor_id,
            event_type=EVENT_STOCKED,
            comment=f"{STOCKED_COMMENT} ({report.summary()})",
            occurred_at=format_timestamp(now),
            persisted={"stock_persisted": True},
        )

        log = logger.warning if report.partial_failure else logger.info
        log(
            "purchase_request_stocked",
            extra={
                "tenant_id": tenant_id,
                "purchase_request_id": request_id,
                "actor_id": actor_id,
                "applied": len(report.applied),
                "skipped": len(report.skipped),
                "failed": len(report.failed),
            },
        )
        return report

    def _fulfill_item(
        self,
        db,
        items_repo: PurchaseRequestItemRepository,
        *,
        tenant_id: str,
        purchase_request: PurchaseRequest,
        item: RequestLineItem,
        actor_id: str,
        acquired_on: str,
    ) -> FulfillmentOutcome:
        if item.status == ITEM_REJECTED:
            return FulfillmentOutcome(item_id=item.id, result=FULFILLMENT_SKIPPED, reason="rejected")

        quantity = item.effective_quantity
        if quantity <= 0:
            return FulfillmentOutcome(item_id=item.id, result=FULFILLMENT_SKIPPED, reason="no_quantity")

        try:
            if item.linked_inventory_item_id is not None:
                self._store.get_quantity(tenant_id, item.linked_inventory_item_id)
                self._store.increment_quantity(tenant_id, item.linked_inventory_item_id, quantity)
                return FulfillmentOutcome(
                    item_id=item.id,
                    result=FULFILLMENT_APPLIED,
                    quantity=quantity,
                    action=ACTION_INCREMENTED,
                    inventory_item_id=item.linked_inventory_item_id,
                )

            inventory_item_id = self._store.create_item(
                tenant_id,
                NewInventoryItem(
                    name=item.description,
                    quantity=quantity,
                    description=purchase_request.notes,
                    location=item.application_location,
                    unit_cost=item.estimated_unit_price,
                    acquired_on=acquired_on,
                    created_by=actor_id,
                ),
            )
        except InventoryStoreError as exc:
            return self._store_failure(tenant_id, purchase_request, item, quantity, exc)
        except Exception as exc:
            return self._store_failure(
                tenant_id,
                purchase_request,
                item,
                quantity,
                InventoryStoreError(str(exc) or type(exc).__name__),
                exc_info=True,
            )

        try:
            items_repo.link_inventory_item(db, item.id, inventory_item_id)
            db.commit()
        except Exception:
            db.rollback()
            logger.error(
                "fulfillment_link_failed",
                extra={
                    "tenant_id": tenant_id,
                    "purchase_request_id": purchase_request.id,
                    "item_id": item.id,
                    "inventory_item_id": inventory_item_id,
                },
                exc_info=True,
            )
            # The inventory record exists; only the back-link is missing.
            return FulfillmentOutcome(
                item_id=item.id,
                result=FULFILLMENT_FAILED,
                quantity=quantity,
                action=ACTION_CREATED,
                inventory_item_id=inventory_item_id,
                reason=LINK_PERSIST_FAILED,
            )
        return FulfillmentOutcome(
            item_id=item.id,
            result=FULFILLMENT_APPLIED,
            quantity=quantity,
            action=ACTION_CREATED,
            inventory_item_id=inventory_item_id,
        )

    @staticmethod
    def _store_failure(
        tenant_id: str,
        purchase_request: PurchaseRequest,
        item: RequestLineItem,
        quantity: float,
        exc: InventoryStoreError,
        exc_info: bool = False,
    ) -> FulfillmentOutcome:
        logger.warning(
            "fulfillment_item_failed",
            extra={
                "tenant_id": tenant_id,
                "purchase_request_id": purchase_request.id,
                "item_id": item.id,
                "inventory_item_id": item.linked_inventory_item_id,
                "error_code": exc.code,
            },
            exc_info=exc_info,
        )
        return FulfillmentOutcome(
            item_id=item.id,
            result=FULFILLMENT_FAILED,
            quantity=quantity,
            inventory_item_id=item.linked_inventory_item_id,
            reason=exc.code,
        )
