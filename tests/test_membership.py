import unittest

from stokstak.db import get_db
from stokstak.errors import PermissionError, ValidationError
from stokstak.infrastructure.repositories import MembershipRepository
from stokstak.membership import MembershipOracle
from stokstak.policies import has_any_role, normalize_role, parse_role, require_roles
from tests.helpers.purchasing import PurchasingDbTestCase


class MembershipOracleTest(PurchasingDbTestCase):
    sandbox_prefix = "membership_oracle"

    def setUp(self) -> None:
        super().setUp()
        self.oracle = MembershipOracle(get_db)

    def test_role_of_granted_member(self) -> None:
        self.oracle.grant(self.tenant_id, "pm-1", "pm", display_name="Pat")
        self.assertEqual(self.oracle.role_of(self.tenant_id, "pm-1"), "pm")

        row = MembershipRepository(tenant_id=self.tenant_id).find(self.db, "pm-1")
        self.assertEqual(row["display_name"], "Pat")

    def test_regrant_replaces_role_and_keeps_display_name(self) -> None:
        self.oracle.grant(self.tenant_id, "pm-1", "pm", display_name="Pat")
        self.oracle.grant(self.tenant_id, "pm-1", "president")

        self.assertEqual(self.oracle.role_of(self.tenant_id, "pm-1"), "president")
        row = MembershipRepository(tenant_id=self.tenant_id).find(self.db, "pm-1")
        self.assertEqual(row["display_name"], "Pat")

    def test_non_member_is_forbidden(self) -> None:
        self.oracle.grant("tenant-other", "pm-1", "pm")

        with self.assertLogs("stokstak.membership", level="WARNING"):
            with self.assertRaises(PermissionError) as ctx:
                self.oracle.role_of(self.tenant_id, "pm-1")
        self.assertEqual(ctx.exception.code, "membership_required")
        self.assertEqual(ctx.exception.http_status, 403)



class RolePolicyTest(unittest.TestCase):
    def test_normalize_role(self) -> None:
        self.assertEqual(normalize_role(" President "), "president")
        self.assertEqual(normalize_role("ceo"), "member")
        self.assertEqual(normalize_role(None, default=""), "")

    def test_parse_role_rejects_unknown(self) -> None:
        self.assertEqual(parse_role("PURCHASER"), "purchaser")
        with self.assertRaises(ValidationError) as ctx:
            parse_role("ceo")
        self.assertEqual(ctx.exception.code, "role_invalid")

    def test_require_roles(self) -> None:
        self.assertEqual(require_roles("admin", role="admin"), "admin")
        with self.assertRaises(PermissionError):
            require_roles("admin", role="pm")
        self.assertTrue(has_any_role("pm", []))


if __name__ == "__main__":
    unittest.main()
