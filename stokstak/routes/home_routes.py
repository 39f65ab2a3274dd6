from flask import Blueprint, Response, current_app, jsonify

from stokstak.db import backend_name
from stokstak.observability import metrics_snapshot, prometheus_metrics_text
from stokstak.purchasing.statuses import REQUEST_STAGES
from stokstak.tenant import current_tenant_id
from stokstak.ui_strings import request_status_label


home_bp = Blueprint("home", __name__)


@home_bp.route("/")
def home():
    return jsonify(
        {
            "service": "stokstak-purchasing",
            "tenant_id": current_tenant_id(),
            "stages": [{"key": stage, "label": request_status_label(stage)} for stage in REQUEST_STAGES],
            "api": "/api/purchase-requests",
        }
    )


@home_bp.route("/health")
def health():
    return jsonify(
        {
            "status": "ok",
            "db": backend_name(current_app.config.get("DB_PATH")),
            "env": current_app.config.get("ENV", "unknown"),
            "metrics": {"http": metrics_snapshot()},
        }
    )


@home_bp.route("/metrics")
def metrics():
    return Response(prometheus_metrics_text(), mimetype="text/plain; version=0.0.4")
