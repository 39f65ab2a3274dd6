import unittest
from unittest.mock import patch

from stokstak.infrastructure.repositories.purchasing import WorkflowEventRepository
from stokstak.ui_strings import error_message
from tests.helpers.purchasing import PurchasingApiTestCase


class ErrorPermissionTest(PurchasingApiTestCase):
    sandbox_prefix = "error_perm"
    config_overrides = {"AUTH_ENABLED": True}

    def test_permission_error_for_unauthenticated_api(self) -> None:
        response = self.client.get("/api/purchase-requests", headers=self.headers(None))
        self.assertEqual(response.status_code, 401)

        payload = response.get_json()
        self.assertEqual(payload.get("error"), "auth_required")
        self.assertEqual(payload.get("message"), error_message("auth_required"))
        self.assertTrue((payload.get("request_id") or "").strip())
        self.assertNotIn("Traceback", response.get_data(as_text=True))

    def test_auth_can_be_disabled_but_membership_still_applies(self) -> None:
        self.app.config["AUTH_ENABLED"] = False
        response = self.client.get("/api/purchase-requests", headers=self.headers(None))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json().get("error"), "membership_required")


class ErrorHandlingApiTest(PurchasingApiTestCase):
    sandbox_prefix = "error_api"

    def setUp(self) -> None:
        super().setUp()
        self.grant("member-1", "member")
        self.grant("pm-1", "pm")

    def _create_request(self) -> int:
        response = self.client.post(
            "/api/purchase-requests",
            headers=self.headers("member-1"),
            json={"items": [{"description": "Pipe wrench", "quantity": 2}]},
        )
        self.assertEqual(response.status_code, 201)
        return int(response.get_json()["request"]["id"])

    def test_validation_error_carries_formatted_message(self) -> None:
        request_id = self._create_request()
        response = self.client.post(
            f"/api/purchase-requests/{request_id}/transitions",
            headers=self.headers("member-1"),
            json={"to_status": "pm_approved"},
        )
        self.assertEqual(response.status_code, 403)
        payload = response.get_json()
        self.assertEqual(payload.get("error"), "transition_not_allowed")
        self.assertEqual(payload.get("message"), "Your role cannot move this request from submitted to pm_approved.")
        self.assertTrue((payload.get("request_id") or "").strip())

    def test_not_found_keeps_correlation_id(self) -> None:
        response = self.client.get(
            "/api/purchase-requests/4040",
            headers={**self.headers("member-1"), "X-Request-Id": "corr-404"},
        )
        self.assertEqual(response.status_code, 404)
        payload = response.get_json()
        self.assertEqual(payload.get("request_id"), "corr-404")
        self.assertEqual(payload.get("purchase_request_id"), 4040)

    def test_event_write_failure_is_critical_and_reports_persisted_status(self) -> None:
        request_id = self._create_request()

        with patch.object(WorkflowEventRepository, "add_event", side_effect=RuntimeError("disk full")):
            response = self.client.post(
                f"/api/purchase-requests/{request_id}/transitions",
                headers=self.headers("pm-1"),
                json={"to_status": "pm_approved"},
            )

        self.assertEqual(response.status_code, 500)
        payload = response.get_json()
        self.assertEqual(payload.get("error"), "event_log_write_failed")
        self.assertTrue(payload.get("status_persisted"))
        self.assertNotIn("disk full", response.get_data(as_text=True))

        detail = self.client.get(f"/api/purchase-requests/{request_id}", headers=self.headers("pm-1"))
        self.assertEqual(detail.get_json()["request"]["status"], "pm_approved")

    def test_stack_trace_not_exposed_for_unhandled_error(self) -> None:
        with patch(
            "stokstak.routes.purchasing_routes._SUBMISSION_SERVICE.list_requests",
            side_effect=RuntimeError("stack_secret_token"),
        ):
            response = self.client.get("/api/purchase-requests", headers=self.headers("member-1"))

        self.assertEqual(response.status_code, 500)
        payload = response.get_json()
        self.assertEqual(payload.get("error"), "unexpected_error")
        self.assertEqual(payload.get("message"), error_message("unexpected_error"))
        body = response.get_data(as_text=True)
        self.assertNotIn("Traceback", body)
        self.assertNotIn("stack_secret_token", body)


if __name__ == "__main__":
    unittest.main()
