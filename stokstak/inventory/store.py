from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from stokstak.errors import DependencyFailureError
from stokstak.infrastructure.repositories.inventory import InventoryRepository


class InventoryStoreError(DependencyFailureError):
    """Raised by an InventoryStore; fulfillment records it per item instead of aborting."""

    def __init__(self, message: str, *, code: str | None = None, message_key: str | None = None) -> None:
        super().__init__(
            code=str(code or "").strip() or "inventory_store_error",
            message_key=message_key,
            details=message,
        )


class InventoryItemNotFound(InventoryStoreError):
    def __init__(self, tenant_id: str, inventory_item_id: int) -> None:
        super().__init__(
            f"inventory item {inventory_item_id} not found for tenant {tenant_id}",
            code="inventory_item_not_found",
            message_key="inventory_item_not_found",
        )
        self.tenant_id = tenant_id
        self.inventory_item_id = inventory_item_id


@dataclass(frozen=True)
class NewInventoryItem:
    name: str
    quantity: float
    description: str | None = None
    location: str | None = None
    unit_cost: float | None = None
    acquired_on: str | None = None
    created_by: str | None = None


class InventoryStore(ABC):
    @abstractmethod
    def get_quantity(self, tenant_id: str, inventory_item_id: int) -> float:
        raise NotImplementedError

    @abstractmethod
    def increment_quantity(self, tenant_id: str, inventory_item_id: int, delta: float) -> float:
        raise NotImplementedError

    @abstractmethod
    def create_item(self, tenant_id: str, fields: NewInventoryItem) -> int:
        raise NotImplementedError


class SqlInventoryStore(InventoryStore):
    """Inventory collaborator backed by the inventory_items table of the same database.

    Each call commits on its own; there is no transaction spanning the purchase
    workflow and stock records.
    """

    def __init__(self, db_factory: Callable[[], object]) -> None:
        self._db_factory = db_factory

    def _wrap(self, exc: Exception) -> InventoryStoreError:
        return InventoryStoreError(str(exc) or exc.__class__.__name__)

    def get_quantity(self, tenant_id: str, inventory_item_id: int) -> float:
        db = self._db_factory()
        try:
            row = InventoryRepository(tenant_id=tenant_id).get_by_id(db, inventory_item_id)
        except Exception as exc:
            raise self._wrap(exc) from exc
        if row is None:
            raise InventoryItemNotFound(tenant_id, inventory_item_id)
        return float(row.get("quantity") or 0)

    def increment_quantity(self, tenant_id: str, inventory_item_id: int, delta: float) -> float:
        current = self.get_quantity(tenant_id, inventory_item_id)
        new_quantity = current + float(delta)
        db = self._db_factory()
        try:
            updated = InventoryRepository(tenant_id=tenant_id).set_quantity(db, inventory_item_id, new_quantity)
            db.commit()
        except Exception as exc:
            raise self._wrap(exc) from exc
        if not updated:
            raise InventoryItemNotFound(tenant_id, inventory_item_id)
        return new_quantity

    def create_item(self, tenant_id: str, fields: NewInventoryItem) -> int:
        db = self._db_factory()
        try:
            inventory_item_id = InventoryRepository(tenant_id=tenant_id).create(
                db,
                name=fields.name,
                description=fields.description,
                quantity=fields.quantity,
                location=fields.location,
                unit_cost=fields.unit_cost,
                acquired_on=fields.acquired_on,
                created_by=fields.created_by,
            )
            db.commit()
        except Exception as exc:
            raise self._wrap(exc) from exc
        return inventory_item_id
