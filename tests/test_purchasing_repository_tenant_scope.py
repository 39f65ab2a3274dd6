import unittest

from stokstak import create_app
from stokstak.config import Config
from stokstak.db import close_db, get_db
from stokstak.infrastructure.repositories import MembershipRepository, TenantScopeRequiredError
from stokstak.infrastructure.repositories.inventory import InventoryRepository
from stokstak.infrastructure.repositories.purchasing import (
    PurchaseRequestItemRepository,
    PurchaseRequestRepository,
    WorkflowEventRepository,
)
from tests.helpers.temp_db import TempDbSandbox


class PurchasingRepositoryTenantScopeTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="repo_scope")
        TempConfig = self._temp_db.make_config(
            Config,
            TESTING=True,
            AUTH_ENABLED=False,
        )
        self.app = create_app(TempConfig)

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()

    def test_repositories_require_tenant_scope(self) -> None:
        for repository_class in (
            PurchaseRequestRepository,
            PurchaseRequestItemRepository,
            WorkflowEventRepository,
            InventoryRepository,
            MembershipRepository,
        ):
            with self.assertRaises(TenantScopeRequiredError):
                repository_class()
            with self.assertRaises(TenantScopeRequiredError):
                repository_class(tenant_id="   ")

    def _create_request(self, db, repo: PurchaseRequestRepository, number: str) -> int:
        return repo.create(
            db,
            number=number,
            project_ref=None,
            requested_by="member-1",
            status="submitted",
            needed_by=None,
            notes=None,
            created_at="2026-03-02T09:30:00Z",
        )

    def test_purchase_request_repository_isolates_tenant_data(self) -> None:
        with self.app.app_context():
            db = get_db()
            repo_a = PurchaseRequestRepository(tenant_id="tenant-a")
            repo_b = PurchaseRequestRepository(tenant_id="tenant-b")

            a_id = self._create_request(db, repo_a, "PR-A-001")
            b_id = self._create_request(db, repo_b, "PR-B-001")
            db.commit()

            tenant_a_rows = repo_a.list_summary(db, limit=20)
            tenant_b_rows = repo_b.list_summary(db, limit=20)

            self.assertEqual([int(row["id"]) for row in tenant_a_rows], [a_id])
            self.assertEqual([int(row["id"]) for row in tenant_b_rows], [b_id])
            self.assertEqual(repo_a.count(db), 1)

            self.assertIsNone(repo_a.get_by_id(db, b_id))
            self.assertIsNone(repo_b.get_by_id(db, a_id))

    def test_conditional_writes_do_not_cross_tenants(self) -> None:
        with self.app.app_context():
            db = get_db()
            repo_a = PurchaseRequestRepository(tenant_id="tenant-a")
            repo_b = PurchaseRequestRepository(tenant_id="tenant-b")
            a_id = self._create_request(db, repo_a, "PR-A-002")
            item_id = PurchaseRequestItemRepository(tenant_id="tenant-a").create(
                db,
                request_id=a_id,
                description="Rebar",
                quantity=20,
                unit="ea",
                item_type="material",
                application_location=None,
                estimated_unit_price=None,
            )
            db.commit()

            self.assertFalse(repo_b.update_status_if(db, a_id, expected_status="submitted", status="pm_approved"))
            self.assertFalse(
                PurchaseRequestItemRepository(tenant_id="tenant-b").update_decision_if(
                    db,
                    item_id,
                    expected_status="pending",
                    fields={"status": "approved", "approved_quantity": 5},
                )
            )
            self.assertIsNone(PurchaseRequestItemRepository(tenant_id="tenant-b").get_by_id(db, item_id))

            self.assertTrue(repo_a.update_status_if(db, a_id, expected_status="submitted", status="pm_approved"))
            self.assertFalse(repo_a.update_status_if(db, a_id, expected_status="submitted", status="rejected"))
            db.commit()
            self.assertEqual(repo_a.get_by_id(db, a_id)["status"], "pm_approved")

    def test_inventory_is_tenant_scoped(self) -> None:
        with self.app.app_context():
            db = get_db()
            inventory_a = InventoryRepository(tenant_id="tenant-a")
            inventory_b = InventoryRepository(tenant_id="tenant-b")
            inventory_item_id = inventory_a.create(db, name="Shovel", quantity=3)
            db.commit()

            self.assertIsNone(inventory_b.get_by_id(db, inventory_item_id))
            self.assertFalse(inventory_b.set_quantity(db, inventory_item_id, 99))
            self.assertEqual(inventory_b.list_all(db), [])
            self.assertEqual(float(inventory_a.get_by_id(db, inventory_item_id)["quantity"]), 3)


if __name__ == "__main__":
    unittest.main()
