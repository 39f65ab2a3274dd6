from __future__ import annotations

from flask import g, jsonify, request, session

from stokstak.observability import current_request_id
from stokstak.ui_strings import error_message


_PUBLIC_PATHS = {"/health", "/metrics"}


def normalize_actor_id(value: str | None) -> str | None:
    actor_id = str(value or "").strip()
    return actor_id or None


def current_actor_id() -> str | None:
    return normalize_actor_id(getattr(g, "actor_id", None))


def register_auth(app) -> None:
    @app.before_request
    def _require_actor():
        path = request.path or "/"
        actor_id = normalize_actor_id(session.get("user_id"))
        if actor_id is None:
            actor_id = normalize_actor_id(request.headers.get("X-User-Id"))
        g.actor_id = actor_id

        if not app.config.get("AUTH_ENABLED", True):
            return None
        if path in _PUBLIC_PATHS or not path.startswith("/api/"):
            return None
        if actor_id:
            return None
        return (
            jsonify(
                {
                    "error": "auth_required",
                    "message": error_message("auth_required", "Authentication required."),
                    "request_id": current_request_id(default="n/a"),
                }
            ),
            401,
        )
