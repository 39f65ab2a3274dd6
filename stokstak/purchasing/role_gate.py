"""Pure permission table for the purchase request workflow.

Nothing in this module touches storage: callers pass the actor role and the
status they just read, and get back what that actor may do from there.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List, Tuple

from stokstak.purchasing.statuses import (
    PM_APPROVED,
    PRESIDENT_APPROVED,
    PURCHASED,
    RECEIVED,
    REJECTED,
    SUBMITTED,
    clean_status,
)


ROLE_MEMBER = "member"
ROLE_PM = "pm"
ROLE_PRESIDENT = "president"
ROLE_PURCHASER = "purchaser"
ROLE_ADMIN = "admin"
ROLES: FrozenSet[str] = frozenset({ROLE_MEMBER, ROLE_PM, ROLE_PRESIDENT, ROLE_PURCHASER, ROLE_ADMIN})


# (role, from_status) -> permitted target statuses.
TRANSITIONS: Dict[Tuple[str, str], FrozenSet[str]] = {
    (ROLE_PM, SUBMITTED): frozenset({PM_APPROVED, REJECTED}),
    (ROLE_PRESIDENT, PM_APPROVED): frozenset({PRESIDENT_APPROVED, REJECTED}),
    (ROLE_PURCHASER, PRESIDENT_APPROVED): frozenset({PURCHASED}),
    (ROLE_PURCHASER, PURCHASED): frozenset({RECEIVED}),
}

# Request status -> role acting as the reviewer of its line items.
ITEM_REVIEWERS: Dict[str, str] = {
    SUBMITTED: ROLE_PM,
    PM_APPROVED: ROLE_PRESIDENT,
}

ACTION_LABELS: Dict[str, str] = {
    PM_APPROVED: "Approve (PM)",
    PRESIDENT_APPROVED: "Approve (President)",
    PURCHASED: "Mark as purchased",
    RECEIVED: "Mark as received",
    REJECTED: "Reject request",
    "decide_items": "Review line items",
    "fulfill_to_inventory": "Receive into stock",
}

# Order in which transitions are offered; the first allowed one is primary.
_TRANSITION_ORDER: List[str] = [PM_APPROVED, PRESIDENT_APPROVED, PURCHASED, RECEIVED, REJECTED]


def _clean_role(role: str | None) -> str:
    return str(role or "").strip().lower()


def can_transition(role: str | None, from_status: str | None) -> FrozenSet[str]:
    return TRANSITIONS.get((_clean_role(role), clean_status(from_status)), frozenset())


def transition_allowed(role: str | None, from_status: str | None, to_status: str | None) -> bool:
    target = clean_status(to_status)
    if not target:
        return False
    return target in can_transition(role, from_status)


def can_decide_item(role: str | None, request_status: str | None) -> bool:
    normalized_role = _clean_role(role)
    if normalized_role == ROLE_ADMIN:
        return True
    reviewer = ITEM_REVIEWERS.get(clean_status(request_status))
    return reviewer is not None and reviewer == normalized_role


def can_fulfill(request_status: str | None) -> bool:
    return clean_status(request_status) == RECEIVED


def available_actions(role: str | None, request_status: str | None) -> Dict[str, object]:
    allowed = can_transition(role, request_status)
    transitions = [status for status in _TRANSITION_ORDER if status in allowed]
    decide_items = can_decide_item(role, request_status)
    fulfill = can_fulfill(request_status)

    primary = transitions[0] if transitions else None
    if primary is None and fulfill:
        primary = "fulfill_to_inventory"
    return {
        "transitions": transitions,
        "can_decide_items": decide_items,
        "can_fulfill": fulfill,
        "primary_action": primary,
        "primary_action_label": action_label(primary) if primary else None,
    }


def action_label(action: str, fallback: str | None = None) -> str:
    label = ACTION_LABELS.get(action)
    if label:
        return label
    if fallback is not None:
        return fallback
    return action


def transition_table() -> List[Dict[str, str]]:
    rows: List[Dict[str, str]] = []
    for (role, from_status), targets in sorted(TRANSITIONS.items()):
        for to_status in sorted(targets):
            rows.append({"role": role, "from_status": from_status, "to_status": to_status})
    return rows


def frontend_bundle() -> Dict[str, object]:
    return {
        "roles": sorted(ROLES),
        "transitions": transition_table(),
        "item_reviewers": dict(ITEM_REVIEWERS),
        "action_labels": ACTION_LABELS,
    }
