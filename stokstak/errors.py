from __future__ import annotations

from typing import Any, Dict

from stokstak.ui_strings import error_message


class AppError(Exception):
    """Base of every error the API turns into a JSON error body.

    Subclasses only change the class-level defaults; callers override them
    per instance with keyword arguments.
    """

    code = "system_error"
    message_key = "unexpected_error"
    http_status = 500
    critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or type(self).code).strip()
        self.message_key = (message_key or type(self).message_key).strip()
        self.http_status = int(http_status or type(self).http_status)
        self.critical = type(self).critical if critical is None else bool(critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        template = error_message(self.message_key, error_message("unexpected_error"))
        if not self.payload or "{" not in template:
            return template
        try:
            return template.format(**self.payload)
        except (KeyError, IndexError, ValueError):
            return template

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.user_message(),
            "request_id": request_id,
            **self.payload,
        }


class UserActionError(AppError):
    code = "action_invalid"
    message_key = "action_invalid"
    http_status = 400
    critical = False


class ValidationError(UserActionError):
    """Malformed input: bad decision, missing comment, quantity out of range."""

    code = "validation_error"
    message_key = "validation_error"


class PermissionError(UserActionError):
    """The role gate denied the action."""

    code = "permission_denied"
    message_key = "permission_denied"
    http_status = 403


class NotFoundError(UserActionError):
    code = "not_found"
    message_key = "not_found"
    http_status = 404


class ConflictError(UserActionError):
    """The row no longer holds the status that was read before the write."""

    code = "status_conflict"
    message_key = "status_conflict"
    http_status = 409


class DependencyFailureError(AppError):
    """A collaborator outside the purchasing tables (the inventory store) failed."""

    code = "dependency_failure"
    message_key = "dependency_unavailable"
    http_status = 502
    critical = False


class SystemError(AppError):
    pass
