from __future__ import annotations

from typing import Dict, List

from stokstak.purchasing.role_gate import frontend_bundle as workflow_frontend_bundle


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "Stokstak",
    "purchase_request": "Purchase request",
    "line_item": "Line item",
    "inventory_item": "Inventory item",
    "tenant": "Company",
}


STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "purchase_request": [
        {
            "key": "submitted",
            "label": "Submitted",
            "description": "Waiting for project manager review.",
        },
        {
            "key": "pm_approved",
            "label": "PM Approved",
            "description": "Approved by the project manager, waiting for the president.",
        },
        {
            "key": "president_approved",
            "label": "President Approved",
            "description": "Fully approved and ready to be purchased.",
        },
        {
            "key": "purchased",
            "label": "Purchased",
            "description": "Order placed with the vendor, waiting for delivery.",
        },
        {
            "key": "received",
            "label": "Received",
            "description": "Delivered; approved items can be received into stock.",
        },
        {
            "key": "rejected",
            "label": "Rejected",
            "description": "Closed without purchase.",
        },
    ],
    "line_item": [
        {
            "key": "pending",
            "label": "Pending",
            "description": "No decision recorded yet.",
        },
        {
            "key": "approved",
            "label": "Approved",
            "description": "Approved for the recorded quantity.",
        },
        {
            "key": "rejected",
            "label": "Rejected",
            "description": "Rejected with a comment.",
        },
    ],
}


EVENT_LABELS: Dict[str, str] = {
    "status_change": "Status changed",
    "item_approved": "Line item approved",
    "item_rejected": "Line item rejected",
    "stocked": "Received into inventory",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "success": {
        "request_created": "Purchase request created and submitted for approval.",
        "status_updated": "Status updated to {status_label}.",
        "item_decided": "Line item updated.",
        "stocked": "Items added/updated in Stokstak inventory.",
        "stocked_partial": "Some items could not be received into inventory.",
    },
    "error": {
        "action_invalid": "Invalid action for this operation.",
        "auth_required": "Authentication required.",
        "comment_required": "A comment is required for this decision.",
        "cross_origin_blocked": "Cross-origin request blocked.",
        "decision_invalid": "Decision must be either approve or reject.",
        "dependency_unavailable": "The inventory service could not be reached. Try again shortly.",
        "event_log_write_failed": "The status was saved but its history entry could not be recorded.",
        "fulfillment_too_large": "This request has more than {max_items} line items to receive at once.",
        "inventory_item_not_found": "Linked inventory item was not found.",
        "item_decision_not_allowed": "Your role cannot decide line items while the request is {request_status}.",
        "item_not_found": "Line item not found.",
        "items_required": "Please add at least one line item with description and quantity.",
        "membership_required": "You are not a member of this company.",
        "not_found": "Record not found.",
        "permission_denied": "You do not have permission to perform this action.",
        "price_invalid": "Estimated unit price must be a non-negative number.",
        "purchase_request_not_found": "Purchase request not found.",
        "quantity_invalid": "Quantity must be a positive number.",
        "quantity_out_of_range": "Approved quantity must be between 1 and {max_quantity}.",
        "rate_limit_exceeded": "Too many requests. Try again in a moment.",
        "reject_comment_required": "Rejection comment is required.",
        "rejection_reason_required": "Rejection reason is required.",
        "request_not_received": "Only received requests can be received into stock.",
        "resubmit_comment_required": "Comment is required to re-approve a rejected item.",
        "role_invalid": "Unknown role.",
        "status_conflict": "This record was changed by someone else. Reload and try again.",
        "status_invalid": "Unknown status for this workflow.",
        "tenant_required": "No company selected.",
        "transition_not_allowed": "Your role cannot move this request from {from_status} to {to_status}.",
        "unexpected_error": "The operation could not be completed. Try again shortly.",
        "validation_error": "Invalid data for this operation.",
    },
}


def status_keys_for_group(group: str) -> List[str]:
    return [item["key"] for item in STATUS_GROUPS.get(group, [])]


def _build_labels(group: str) -> Dict[str, str]:
    return {item["key"]: item["label"] for item in STATUS_GROUPS.get(group, [])}


REQUEST_STATUS_LABELS = _build_labels("purchase_request")
ITEM_STATUS_LABELS = _build_labels("line_item")


def request_status_label(status: str | None) -> str:
    key = str(status or "").strip()
    return REQUEST_STATUS_LABELS.get(key, key)


def event_label(event_type: str | None) -> str:
    key = str(event_type or "").strip()
    return EVENT_LABELS.get(key, key)


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)


def frontend_bundle() -> Dict[str, object]:
    return {
        "terms": FRIENDLY_TERMS,
        "status_groups": STATUS_GROUPS,
        "request_status_labels": REQUEST_STATUS_LABELS,
        "item_status_labels": ITEM_STATUS_LABELS,
        "event_labels": EVENT_LABELS,
        "messages": MESSAGES,
        "workflow": workflow_frontend_bundle(),
    }
