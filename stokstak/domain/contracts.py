from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Union

from stokstak.errors import ValidationError
from stokstak.purchasing.statuses import DEFAULT_ITEM_TYPE, DEFAULT_UNIT, ITEM_TYPES, clean_status, is_request_status


@dataclass(frozen=True)
class LineItemInput:
    description: str
    quantity: float
    unit: str = DEFAULT_UNIT
    item_type: str = DEFAULT_ITEM_TYPE
    application_location: str | None = None
    estimated_unit_price: float | None = None


@dataclass(frozen=True)
class PurchaseRequestCreateInput:
    items: List[LineItemInput]
    number: str | None = None
    project_ref: str | None = None
    needed_by: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ApproveDecision:
    quantity: float
    resubmit_comment: str | None = None

    kind = "approve"


@dataclass(frozen=True)
class RejectDecision:
    comment: str

    kind = "reject"


Decision = Union[ApproveDecision, RejectDecision]


FULFILLMENT_APPLIED = "applied"
FULFILLMENT_SKIPPED = "skipped"
FULFILLMENT_FAILED = "failed"


@dataclass(frozen=True)
class FulfillmentOutcome:
    item_id: int
    result: str
    quantity: float = 0.0
    action: str | None = None
    inventory_item_id: int | None = None
    reason: str | None = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "result": self.result,
            "quantity": self.quantity,
            "action": self.action,
            "inventory_item_id": self.inventory_item_id,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class FulfillmentReport:
    request_id: int
    outcomes: List[FulfillmentOutcome] = field(default_factory=list)

    def _with_result(self, result: str) -> List[FulfillmentOutcome]:
        return [outcome for outcome in self.outcomes if outcome.result == result]

    @property
    def applied(self) -> List[FulfillmentOutcome]:
        return self._with_result(FULFILLMENT_APPLIED)

    @property
    def skipped(self) -> List[FulfillmentOutcome]:
        return self._with_result(FULFILLMENT_SKIPPED)

    @property
    def failed(self) -> List[FulfillmentOutcome]:
        return self._with_result(FULFILLMENT_FAILED)

    @property
    def partial_failure(self) -> bool:
        return bool(self.failed)

    def summary(self) -> str:
        return (
            f"applied={len(self.applied)} skipped={len(self.skipped)} failed={len(self.failed)}"
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "purchase_request_id": self.request_id,
            "partial_failure": self.partial_failure,
            "applied": [outcome.to_payload() for outcome in self.applied],
            "skipped": [outcome.to_payload() for outcome in self.skipped],
            "failed": [outcome.to_payload() for outcome in self.failed],
        }


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_number(value: Any, *, code: str = "quantity_invalid") -> float:
    if isinstance(value, bool):
        raise ValidationError(code=code, message_key=code)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(code=code, message_key=code) from None
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(code=code, message_key=code)
    return number


def parse_request_status(value: Any) -> str:
    if is_request_status(value):
        return clean_status(value)
    raise ValidationError(
        code="status_invalid",
        message_key="status_invalid",
        payload={"status": str(value or "")},
    )


def parse_decision(payload: Mapping[str, Any] | None) -> Decision:
    data = dict(payload or {})
    kind = str(data.get("decision") or "").strip().lower()
    if kind == "approve":
        if data.get("quantity") is None:
            raise ValidationError(code="quantity_invalid", message_key="quantity_invalid")
        return ApproveDecision(
            quantity=parse_number(data.get("quantity")),
            resubmit_comment=clean_text(data.get("resubmit_comment")),
        )
    if kind == "reject":
        return RejectDecision(comment=clean_text(data.get("comment")) or "")
    raise ValidationError(
        code="decision_invalid",
        message_key="decision_invalid",
        payload={"decision": kind},
    )


def parse_line_item(raw: Mapping[str, Any]) -> LineItemInput | None:
    """Returns None for blank form rows so callers can drop them."""
    description = clean_text(raw.get("description"))
    raw_quantity = raw.get("quantity")
    if not description or raw_quantity in (None, ""):
        return None
    quantity = parse_number(raw_quantity)
    if quantity <= 0:
        return None

    price: float | None = None
    if raw.get("estimated_unit_price") not in (None, ""):
        price = parse_number(raw.get("estimated_unit_price"), code="price_invalid")
        if price < 0:
            raise ValidationError(code="price_invalid", message_key="price_invalid")

    item_type = str(raw.get("item_type") or "").strip().lower()
    return LineItemInput(
        description=description,
        quantity=quantity,
        unit=clean_text(raw.get("unit")) or DEFAULT_UNIT,
        item_type=item_type if item_type in ITEM_TYPES else DEFAULT_ITEM_TYPE,
        application_location=clean_text(raw.get("application_location")),
        estimated_unit_price=price,
    )


def parse_create_input(payload: Mapping[str, Any] | None) -> PurchaseRequestCreateInput:
    data = dict(payload or {})
    raw_items = data.get("items") or []
    if not isinstance(raw_items, list):
        raw_items = []
    items: List[LineItemInput] = []
    for raw in raw_items:
        if not isinstance(raw, Mapping):
            continue
        parsed = parse_line_item(raw)
        if parsed is not None:
            items.append(parsed)
    return PurchaseRequestCreateInput(
        items=items,
        number=clean_text(data.get("number")),
        project_ref=clean_text(data.get("project_ref")),
        needed_by=clean_text(data.get("needed_by")),
        notes=clean_text(data.get("notes")),
    )
