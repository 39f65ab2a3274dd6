from __future__ import annotations

from typing import Dict, FrozenSet, List, Tuple


SUBMITTED = "submitted"
PM_APPROVED = "pm_approved"
PRESIDENT_APPROVED = "president_approved"
PURCHASED = "purchased"
RECEIVED = "received"
REJECTED = "rejected"

# Success path, in order.
REQUEST_STAGES: List[str] = [SUBMITTED, PM_APPROVED, PRESIDENT_APPROVED, PURCHASED, RECEIVED]
REQUEST_STATUSES: FrozenSet[str] = frozenset(REQUEST_STAGES + [REJECTED])
TERMINAL_STATUSES: FrozenSet[str] = frozenset({RECEIVED, REJECTED})

ITEM_PENDING = "pending"
ITEM_APPROVED = "approved"
ITEM_REJECTED = "rejected"
ITEM_STATUSES: FrozenSet[str] = frozenset({ITEM_PENDING, ITEM_APPROVED, ITEM_REJECTED})

ITEM_TYPES: FrozenSet[str] = frozenset({"material", "tool"})
DEFAULT_ITEM_TYPE = "tool"
DEFAULT_UNIT = "ea"

EVENT_STATUS_CHANGE = "status_change"
EVENT_ITEM_APPROVED = "item_approved"
EVENT_ITEM_REJECTED = "item_rejected"
EVENT_STOCKED = "stocked"
EVENT_TYPES: FrozenSet[str] = frozenset(
    {EVENT_STATUS_CHANGE, EVENT_ITEM_APPROVED, EVENT_ITEM_REJECTED, EVENT_STOCKED}
)

# Stage entered -> (actor column, timestamp column). Rejection has no attribution.
STAGE_ATTRIBUTION: Dict[str, Tuple[str, str]] = {
    PM_APPROVED: ("pm_approved_by", "pm_approved_at"),
    PRESIDENT_APPROVED: ("president_approved_by", "president_approved_at"),
    PURCHASED: ("purchased_by", "purchased_at"),
    RECEIVED: ("received_by", "received_at"),
}


def clean_status(value: object) -> str:
    return str(value or "").strip().lower()


def is_request_status(value: object) -> bool:
    return clean_status(value) in REQUEST_STATUSES

