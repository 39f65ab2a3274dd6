from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping

from stokstak.purchasing.statuses import DEFAULT_ITEM_TYPE, DEFAULT_UNIT


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _opt_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _opt_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


@dataclass(frozen=True)
class PurchaseRequest:
    id: int
    tenant_id: str
    number: str | None
    project_ref: str | None
    requested_by: str
    status: str
    needed_by: str | None
    notes: str | None
    created_at: str | None
    pm_approved_by: str | None = None
    pm_approved_at: str | None = None
    president_approved_by: str | None = None
    president_approved_at: str | None = None
    purchased_by: str | None = None
    purchased_at: str | None = None
    received_by: str | None = None
    received_at: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PurchaseRequest":
        return cls(
            id=int(row["id"]),
            tenant_id=str(row["tenant_id"]),
            number=_opt_str(row.get("number")),
            project_ref=_opt_str(row.get("project_ref")),
            requested_by=str(row.get("requested_by") or ""),
            status=str(row["status"]),
            needed_by=_opt_str(row.get("needed_by")),
            notes=_opt_str(row.get("notes")),
            created_at=_opt_str(row.get("created_at")),
            pm_approved_by=_opt_str(row.get("pm_approved_by")),
            pm_approved_at=_opt_str(row.get("pm_approved_at")),
            president_approved_by=_opt_str(row.get("president_approved_by")),
            president_approved_at=_opt_str(row.get("president_approved_at")),
            purchased_by=_opt_str(row.get("purchased_by")),
            purchased_at=_opt_str(row.get("purchased_at")),
            received_by=_opt_str(row.get("received_by")),
            received_at=_opt_str(row.get("received_at")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RequestLineItem:
    id: int
    tenant_id: str
    request_id: int
    description: str
    quantity: float
    unit: str
    item_type: str
    application_location: str | None
    estimated_unit_price: float | None
    status: str
    approved_quantity: float | None
    reject_comment: str | None
    resubmit_comment: str | None
    linked_inventory_item_id: int | None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RequestLineItem":
        return cls(
            id=int(row["id"]),
            tenant_id=str(row["tenant_id"]),
            request_id=int(row["request_id"]),
            description=str(row["description"]),
            quantity=float(row["quantity"]),
            unit=_opt_str(row.get("unit")) or DEFAULT_UNIT,
            item_type=_opt_str(row.get("item_type")) or DEFAULT_ITEM_TYPE,
            application_location=_opt_str(row.get("application_location")),
            estimated_unit_price=_opt_float(row.get("estimated_unit_price")),
            status=str(row["status"]),
            approved_quantity=_opt_float(row.get("approved_quantity")),
            reject_comment=_opt_str(row.get("reject_comment")),
            resubmit_comment=_opt_str(row.get("resubmit_comment")),
            linked_inventory_item_id=_opt_int(row.get("linked_inventory_item_id")),
        )

    @property
    def effective_quantity(self) -> float:
        if self.approved_quantity is not None:
            return self.approved_quantity
        return self.quantity

    @property
    def estimated_total(self) -> float | None:
        if self.estimated_unit_price is None:
            return None
        return self.quantity * self.estimated_unit_price

    def to_payload(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["estimated_total"] = self.estimated_total
        return payload


@dataclass(frozen=True)
class WorkflowEvent:
    id: int
    tenant_id: str
    request_id: int
    item_id: int | None
    performed_by: str
    event_type: str
    from_status: str | None
    to_status: str | None
    comment: str | None
    occurred_at: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "WorkflowEvent":
        return cls(
            id=int(row["id"]),
            tenant_id=str(row["tenant_id"]),
            request_id=int(row["request_id"]),
            item_id=_opt_int(row.get("item_id")),
            performed_by=str(row["performed_by"]),
            event_type=str(row["event_type"]),
            from_status=_opt_str(row.get("from_status")),
            to_status=_opt_str(row.get("to_status")),
            comment=_opt_str(row.get("comment")),
            occurred_at=str(row["occurred_at"]),
        )

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)
