import unittest
from unittest.mock import patch

from stokstak.application.adjudication_service import AdjudicationService
from stokstak.domain.contracts import ApproveDecision, RejectDecision
from stokstak.errors import ConflictError, NotFoundError, PermissionError, ValidationError
from stokstak.observability import metrics_snapshot
from stokstak.infrastructure.repositories.purchasing import PurchaseRequestItemRepository, PurchaseRequestRepository
from stokstak.purchasing.role_gate import can_decide_item
from tests.helpers.purchasing import (
    PurchasingDbTestCase,
    StepClock,
    event_rows,
    line,
    request_status,
    seed_request,
)


class AdjudicationServiceTest(PurchasingDbTestCase):
    sandbox_prefix = "adjudication_service"

    def setUp(self) -> None:
        super().setUp()
        self.service = AdjudicationService(clock=StepClock())
        self.request_id, self.item_ids = seed_request(
            self.db,
            self.tenant_id,
            items=[line("Concrete anchors", 4, item_type="material"), line("Laser level", 1)],
        )
        self.item_id = self.item_ids[0]

    def _decide(self, decision, role: str = "pm", item_id: int | None = None, actor: str = "pm-1"):
        return self.service.decide_item(
            self.db,
            tenant_id=self.tenant_id,
            item_id=item_id or self.item_id,
            actor_id=actor,
            actor_role=role,
            decision=decision,
        )

    def test_pm_approves_partial_quantity(self) -> None:
        item = self._decide(ApproveDecision(quantity=3))

        self.assertEqual(item.status, "approved")
        self.assertEqual(item.approved_quantity, 3)
        self.assertEqual(item.effective_quantity, 3)
        self.assertIsNone(item.resubmit_comment)

        events = event_rows(self.db, self.tenant_id, self.request_id)
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["event_type"], "item_approved")
        self.assertEqual(events[0]["item_id"], self.item_id)
        self.assertEqual(events[0]["performed_by"], "pm-1")
        self.assertEqual(metrics_snapshot()["workflow"]["item_decisions"], {"approve": 1})

    def test_approved_quantity_must_be_in_range(self) -> None:
        for quantity in (0, -1, 5):
            with self.assertRaises(ValidationError) as ctx:
                self._decide(ApproveDecision(quantity=quantity))
            self.assertEqual(ctx.exception.code, "quantity_out_of_range")
            self.assertEqual(
                ctx.exception.user_message(),
                "Approved quantity must be between 1 and 4.",
            )

        self.assertEqual(event_rows(self.db, self.tenant_id, self.request_id), [])

    def test_full_quantity_is_accepted(self) -> None:
        item = self._decide(ApproveDecision(quantity=4))
        self.assertEqual(item.approved_quantity, 4)

    def test_reject_requires_comment(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self._decide(RejectDecision(comment="  "))
        self.assertEqual(ctx.exception.code, "reject_comment_required")

    def test_reject_sets_zero_quantity_and_comment(self) -> None:
        item = self._decide(RejectDecision(comment="Wrong model number"))

        self.assertEqual(item.status, "rejected")
        self.assertEqual(item.approved_quantity, 0)
        self.assertEqual(item.reject_comment, "Wrong model number")
        events = event_rows(self.db, self.tenant_id, self.request_id)
        self.assertEqual(events[0]["event_type"], "item_rejected")
        self.assertEqual(events[0]["comment"], "Wrong model number")

    def test_reapproval_of_rejected_item_needs_resubmit_comment(self) -> None:
        self._decide(RejectDecision(comment="Wrong model number"))

        with self.assertRaises(ValidationError) as ctx:
            self._decide(ApproveDecision(quantity=2))
        self.assertEqual(ctx.exception.code, "resubmit_comment_required")

        item = self._decide(ApproveDecision(quantity=2, resubmit_comment="Vendor corrected the model number"))
        self.assertEqual(item.status, "approved")
        self.assertEqual(item.approved_quantity, 2)
        self.assertEqual(item.resubmit_comment, "Vendor corrected the model number")
        self.assertEqual(item.reject_comment, "Wrong model number")

        events = event_rows(self.db, self.tenant_id, self.request_id)
        self.assertEqual([event["event_type"] for event in events], ["item_rejected", "item_approved"])
        self.assertEqual(events[1]["comment"], "Vendor corrected the model number")

    def test_items_are_decided_independently(self) -> None:
        self._decide(RejectDecision(comment="Not needed"), item_id=self.item_ids[0])
        second = self._decide(ApproveDecision(quantity=1), item_id=self.item_ids[1])

        self.assertEqual(second.status, "approved")
        rows = self.db.execute(
            "SELECT status FROM purchase_request_items WHERE request_id = ? ORDER BY id",
            (self.request_id,),
        ).fetchall()
        self.assertEqual([row["status"] for row in rows], ["rejected", "approved"])
        status_row = self.db.execute("SELECT status FROM purchase_requests WHERE id = ?", (self.request_id,)).fetchone()
        self.assertEqual(status_row["status"], "submitted")

    def test_role_must_match_request_stage(self) -> None:
        for role in ("president", "purchaser", "member"):
            with self.assertRaises(PermissionError) as ctx:
                self._decide(ApproveDecision(quantity=1), role=role)
            self.assertEqual(ctx.exception.code, "item_decision_not_allowed")

        self.db.execute("UPDATE purchase_requests SET status = 'pm_approved' WHERE id = ?", (self.request_id,))
        self.db.commit()

        with self.assertRaises(PermissionError):
            self._decide(ApproveDecision(quantity=1), role="pm")
        item = self._decide(ApproveDecision(quantity=1), role="president", actor="president-1")
        self.assertEqual(item.status, "approved")

    def test_admin_decides_items_in_any_status(self) -> None:
        self.db.execute("UPDATE purchase_requests SET status = 'purchased' WHERE id = ?", (self.request_id,))
        self.db.commit()

        item = self._decide(RejectDecision(comment="Out of stock at vendor"), role="admin", actor="admin-1")
        self.assertEqual(item.status, "rejected")

    def test_missing_item_or_foreign_tenant(self) -> None:
        with self.assertRaises(NotFoundError):
            self._decide(ApproveDecision(quantity=1), item_id=99999)

        with self.assertRaises(NotFoundError):
            self.service.decide_item(
                self.db,
                tenant_id="tenant-other",
                item_id=self.item_id,
                actor_id="pm-1",
                actor_role="pm",
                decision=ApproveDecision(quantity=1),
            )

    def test_item_must_belong_to_given_request(self) -> None:
        with self.assertRaises(NotFoundError):
            self.service.decide_item(
                self.db,
                tenant_id=self.tenant_id,
                item_id=self.item_id,
                actor_id="pm-1",
                actor_role="pm",
                decision=ApproveDecision(quantity=1),
                request_id=self.request_id + 100,
            )

    def test_stale_item_status_raises_conflict(self) -> None:
        with patch(
            "stokstak.application.adjudication_service.PurchaseRequestItemRepository.update_decision_if",
            return_value=False,
        ):
            with self.assertRaises(ConflictError):
                self._decide(ApproveDecision(quantity=1))

        self.assertEqual(event_rows(self.db, self.tenant_id, self.request_id), [])

    def test_request_rejected_after_gate_check_raises_conflict(self) -> None:
        def reject_request_then_gate(role, status):
            PurchaseRequestRepository(tenant_id=self.tenant_id).update_status_if(
                self.db,
                self.request_id,
                expected_status="submitted",
                status="rejected",
            )
            self.db.commit()
            return can_decide_item(role, status)

        with patch(
            "stokstak.application.adjudication_service.can_decide_item",
            side_effect=reject_request_then_gate,
        ):
            with self.assertRaises(ConflictError) as ctx:
                self._decide(ApproveDecision(quantity=2))

        self.assertEqual(ctx.exception.payload["expected_request_status"], "submitted")
        self.assertEqual(request_status(self.db, self.tenant_id, self.request_id), "rejected")
        item = PurchaseRequestItemRepository(tenant_id=self.tenant_id).get_by_id(self.db, self.item_id)
        self.assertEqual(item["status"], "pending")
        self.assertIsNone(item["approved_quantity"])
        self.assertEqual(event_rows(self.db, self.tenant_id, self.request_id), [])
        self.assertEqual(metrics_snapshot()["workflow"]["conflicts_total"], 1)


if __name__ == "__main__":
    unittest.main()
