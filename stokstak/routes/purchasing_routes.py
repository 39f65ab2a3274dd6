from __future__ import annotations

from typing import Tuple

from flask import Blueprint, current_app, g, jsonify, request

from stokstak.application.adjudication_service import AdjudicationService
from stokstak.application.fulfillment_service import FulfillmentService
from stokstak.application.submission_service import SubmissionService
from stokstak.application.workflow_service import WorkflowService
from stokstak.auth import current_actor_id
from stokstak.db import get_db
from stokstak.domain.contracts import clean_text, parse_create_input, parse_decision, parse_request_status
from stokstak.infrastructure.repositories import MembershipRepository
from stokstak.inventory.store import SqlInventoryStore
from stokstak.membership import MembershipOracle
from stokstak.policies import require_roles
from stokstak.purchasing.role_gate import ROLE_ADMIN
from stokstak.tenant import require_tenant_id
from stokstak.ui_strings import frontend_bundle, request_status_label, success_message


purchasing_bp = Blueprint("purchasing", __name__, url_prefix="/api/purchase-requests")


_WORKFLOW_SERVICE = WorkflowService()
_ADJUDICATION_SERVICE = AdjudicationService()
_SUBMISSION_SERVICE = SubmissionService()


def _ok(key: str, fallback: str | None = None, **values) -> str:
    template = success_message(key, fallback)
    if not values:
        return template
    try:
        return template.format(**values)
    except (KeyError, IndexError, ValueError):
        return template


def _parse_int(value: str | None, default: int, min_value: int, max_value: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return max(min_value, min(parsed, max_value))


def _fulfillment_service() -> FulfillmentService:
    return FulfillmentService(
        SqlInventoryStore(get_db),
        max_items=current_app.config["FULFILLMENT_MAX_ITEMS"],
    )


def _actor_context() -> Tuple[str, str, str]:
    """Resolves (tenant_id, actor_id, role) for the current request."""
    tenant_id = require_tenant_id()
    actor_id = current_actor_id() or ""
    role = MembershipOracle(get_db).role_of(tenant_id, actor_id)
    g.actor_role = role
    return tenant_id, actor_id, role


@purchasing_bp.route("", methods=["GET"])
def list_purchase_requests():
    tenant_id, _, _ = _actor_context()
    status = None
    if request.args.get("status"):
        status = parse_request_status(request.args.get("status"))
    limit = _parse_int(request.args.get("limit"), default=200, min_value=1, max_value=500)
    items = _SUBMISSION_SERVICE.list_requests(get_db(), tenant_id=tenant_id, status=status, limit=limit)
    return jsonify({"items": items})


@purchasing_bp.route("", methods=["POST"])
def create_purchase_request():
    tenant_id, actor_id, role = _actor_context()
    payload = request.get_json(silent=True) or {}
    db = get_db()
    created = _SUBMISSION_SERVICE.create_purchase_request(
        db,
        tenant_id=tenant_id,
        actor_id=actor_id,
        create_input=parse_create_input(payload),
    )
    detail = _SUBMISSION_SERVICE.get_request_detail(
        db,
        tenant_id=tenant_id,
        request_id=created.id,
        actor_role=role,
    )
    detail["message"] = _ok("request_created")
    return jsonify(detail), 201


@purchasing_bp.route("/meta", methods=["GET"])
def purchasing_meta():
    _actor_context()
    return jsonify(frontend_bundle())


@purchasing_bp.route("/<int:request_id>", methods=["GET"])
def purchase_request_detail(request_id: int):
    tenant_id, _, role = _actor_context()
    detail = _SUBMISSION_SERVICE.get_request_detail(
        get_db(),
        tenant_id=tenant_id,
        request_id=request_id,
        actor_role=role,
    )
    return jsonify(detail)


@purchasing_bp.route("/<int:request_id>/events", methods=["GET"])
def purchase_request_events(request_id: int):
    tenant_id, _, _ = _actor_context()
    events = _SUBMISSION_SERVICE.list_events(get_db(), tenant_id=tenant_id, request_id=request_id)
    return jsonify({"items": [event.to_payload() for event in events]})


@purchasing_bp.route("/<int:request_id>/transitions", methods=["POST"])
def purchase_request_transition(request_id: int):
    tenant_id, actor_id, role = _actor_context()
    payload = request.get_json(silent=True) or {}
    updated = _WORKFLOW_SERVICE.request_transition(
        get_db(),
        tenant_id=tenant_id,
        request_id=request_id,
        actor_id=actor_id,
        actor_role=role,
        target_status=str(payload.get("to_status") or ""),
        comment=clean_text(payload.get("comment")),
    )
    status_label = request_status_label(updated.status)
    return jsonify(
        {
            "request": updated.to_payload(),
            "status_label": status_label,
            "message": _ok("status_updated", status_label=status_label),
        }
    )


@purchasing_bp.route("/<int:request_id>/items/<int:item_id>/decision", methods=["POST"])
def purchase_request_item_decision(request_id: int, item_id: int):
    tenant_id, actor_id, role = _actor_context()
    decision = parse_decision(request.get_json(silent=True) or {})
    item = _ADJUDICATION_SERVICE.decide_item(
        get_db(),
        tenant_id=tenant_id,
        item_id=item_id,
        actor_id=actor_id,
        actor_role=role,
        decision=decision,
        request_id=request_id,
    )
    return jsonify({"item": item.to_payload(), "message": _ok("item_decided")})


@purchasing_bp.route("/<int:request_id>/fulfillment", methods=["POST"])
def purchase_request_fulfillment(request_id: int):
    tenant_id, actor_id, _ = _actor_context()
    report = _fulfillment_service().fulfill_to_inventory(
        get_db(),
        tenant_id=tenant_id,
        request_id=request_id,
        actor_id=actor_id,
    )
    payload = report.to_payload()
    payload["message"] = _ok("stocked_partial" if report.partial_failure else "stocked")
    return jsonify(payload)


members_bp = Blueprint("members", __name__, url_prefix="/api/memberships")


@members_bp.route("", methods=["GET"])
def list_memberships():
    tenant_id, _, _ = _actor_context()
    require_roles(ROLE_ADMIN)
    items = MembershipRepository(tenant_id=tenant_id).list_all(get_db())
    return jsonify({"items": items})
