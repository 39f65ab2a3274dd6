from .purchase_request_item_repository import PurchaseRequestItemRepository
from .purchase_request_repository import PurchaseRequestRepository
from .workflow_event_repository import WorkflowEventRepository

__all__ = [
    "PurchaseRequestItemRepository",
    "PurchaseRequestRepository",
    "WorkflowEventRepository",
]
