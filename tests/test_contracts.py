import unittest

from stokstak.domain.contracts import (
    ApproveDecision,
    RejectDecision,
    parse_create_input,
    parse_decision,
    parse_line_item,
    parse_request_status,
)
from stokstak.domain.records import RequestLineItem
from stokstak.errors import ValidationError
from stokstak.purchasing.statuses import DEFAULT_ITEM_TYPE, DEFAULT_UNIT


class DecisionParsingTest(unittest.TestCase):
    def test_approve_with_quantity(self) -> None:
        decision = parse_decision({"decision": "Approve", "quantity": "2.5", "resubmit_comment": "  fixed  "})
        self.assertEqual(decision, ApproveDecision(quantity=2.5, resubmit_comment="fixed"))
        self.assertEqual(decision.kind, "approve")

    def test_approve_requires_numeric_quantity(self) -> None:
        for payload in (
            {"decision": "approve"},
            {"decision": "approve", "quantity": "lots"},
            {"decision": "approve", "quantity": True},
            {"decision": "approve", "quantity": "nan"},
        ):
            with self.assertRaises(ValidationError) as ctx:
                parse_decision(payload)
            self.assertEqual(ctx.exception.code, "quantity_invalid")

    def test_reject_keeps_comment_for_service_validation(self) -> None:
        self.assertEqual(parse_decision({"decision": "reject", "comment": " Too pricey "}), RejectDecision(comment="Too pricey"))
        self.assertEqual(parse_decision({"decision": "reject"}), RejectDecision(comment=""))

    def test_unknown_decision(self) -> None:
        for payload in (None, {}, {"decision": "defer"}):
            with self.assertRaises(ValidationError) as ctx:
                parse_decision(payload)
            self.assertEqual(ctx.exception.code, "decision_invalid")


class LineItemParsingTest(unittest.TestCase):
    def test_blank_rows_are_dropped(self) -> None:
        self.assertIsNone(parse_line_item({"description": "", "quantity": 2}))
        self.assertIsNone(parse_line_item({"description": "Saw", "quantity": ""}))
        self.assertIsNone(parse_line_item({"description": "Saw", "quantity": -3}))

    def test_defaults(self) -> None:
        item = parse_line_item({"description": " Saw ", "quantity": "2"})
        self.assertEqual(item.description, "Saw")
        self.assertEqual(item.quantity, 2)
        self.assertEqual(item.unit, "ea")
        self.assertEqual(item.item_type, "tool")
        self.assertIsNone(item.estimated_unit_price)

    def test_material_type_is_kept(self) -> None:
        self.assertEqual(parse_line_item({"description": "Sand", "quantity": 1, "item_type": "MATERIAL"}).item_type, "material")

    def test_negative_or_garbage_price_is_invalid(self) -> None:
        for price in (-1, "cheap"):
            with self.assertRaises(ValidationError) as ctx:
                parse_line_item({"description": "Saw", "quantity": 1, "estimated_unit_price": price})
            self.assertEqual(ctx.exception.code, "price_invalid")

    def test_garbage_quantity_is_invalid(self) -> None:
        with self.assertRaises(ValidationError):
            parse_line_item({"description": "Saw", "quantity": "many"})


class CreateInputParsingTest(unittest.TestCase):
    def test_header_fields_are_trimmed(self) -> None:
        create_input = parse_create_input(
            {
                "number": " PR-7 ",
                "project_ref": "",
                "needed_by": "2026-04-01",
                "notes": "  ",
                "items": [{"description": "Level", "quantity": 1}, "garbage"],
            }
        )
        self.assertEqual(create_input.number, "PR-7")
        self.assertIsNone(create_input.project_ref)
        self.assertEqual(create_input.needed_by, "2026-04-01")
        self.assertIsNone(create_input.notes)
        self.assertEqual(len(create_input.items), 1)

    def test_non_list_items(self) -> None:
        self.assertEqual(parse_create_input({"items": "Level"}).items, [])
        self.assertEqual(parse_create_input(None).items, [])


class RequestStatusParsingTest(unittest.TestCase):
    def test_known_status_is_normalized(self) -> None:
        self.assertEqual(parse_request_status(" PM_Approved "), "pm_approved")

    def test_unknown_status(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            parse_request_status("archived")
        self.assertEqual(ctx.exception.code, "status_invalid")
        self.assertEqual(ctx.exception.payload, {"status": "archived"})


class RequestLineItemRowTest(unittest.TestCase):
    def _row(self, **overrides) -> dict:
        row = {
            "id": 7,
            "tenant_id": "tenant-acme",
            "request_id": 3,
            "description": "Pry bar",
            "quantity": 2,
            "unit": None,
            "item_type": None,
            "status": "pending",
        }
        row.update(overrides)
        return row

    def test_missing_unit_and_type_fall_back_to_line_item_defaults(self) -> None:
        item = RequestLineItem.from_row(self._row(unit="  ", item_type=None))
        self.assertEqual(item.unit, DEFAULT_UNIT)
        self.assertEqual(item.item_type, DEFAULT_ITEM_TYPE)
        self.assertEqual(item.unit, parse_line_item({"description": "Pry bar", "quantity": 2}).unit)
        self.assertEqual(item.item_type, parse_line_item({"description": "Pry bar", "quantity": 2}).item_type)

    def test_stored_unit_and_type_are_kept(self) -> None:
        item = RequestLineItem.from_row(self._row(unit="box", item_type="material", approved_quantity=1))
        self.assertEqual((item.unit, item.item_type), ("box", "material"))
        self.assertEqual(item.effective_quantity, 1)


if __name__ == "__main__":
    unittest.main()
