"""Branch stock management on top of the inventory ledger."""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aquaflow.core.config import settings
from aquaflow.core.errors import BusinessRuleError, NotFoundError
from aquaflow.db.base import utcnow
from aquaflow.models.inventory import BranchInventoryItem, InventoryItem, StockStatus
from aquaflow.models.order import OrderPriority
from aquaflow.services.inventory_service import InventoryLedger
from aquaflow.services.order_service import OrderService

logger = logging.getLogger(__name__)

LOW_STATUSES = (StockStatus.LOW_STOCK, StockStatus.OUT_OF_STOCK)


def reorder_quantity(item: BranchInventoryItem) -> int:
    """Enough to reach the max level, never less than the minimum reorder size."""
    return max(settings.low_stock_min_reorder_quantity, item.max_stock_level - item.quantity)


class BranchInventoryService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = InventoryLedger(db)

    def get(self, item_id: int) -> BranchInventoryItem:
        item = self.db.get(BranchInventoryItem, item_id)
        if item is None:
            raise NotFoundError("Branch inventory item not found")
        return item

    def list(self, branch_id: Optional[str] = None) -> List[BranchInventoryItem]:
        query = self.db.query(BranchInventoryItem)
        if branch_id:
            query = query.filter(BranchInventoryItem.branch_id == branch_id)
        return query.order_by(BranchInventoryItem.branch_id, BranchInventoryItem.name).all()

    def create(self, data: Dict[str, Any]) -> BranchInventoryItem:
        if self.ledger.find_branch_item(data["branch_id"], data["name"]) is not None:
            raise BusinessRuleError("Item already exists in this branch inventory")
        item = BranchInventoryItem(last_updated=utcnow(), **data)
        self.db.add(item)
        try:
            self.db.flush()
        except IntegrityError:
            raise BusinessRuleError("Item already exists in this branch inventory")
        return item

    def update(self, item_id: int, data: Dict[str, Any]) -> BranchInventoryItem:
        item = self.get(item_id)
        for field, value in data.items():
            setattr(item, field, value)
        item.last_updated = utcnow()
        self.db.flush()
        return item

    def delete(self, item_id: int) -> BranchInventoryItem:
        item = self.get(item_id)
        self.db.delete(item)
        self.db.flush()
        return item

    def update_stock_level(self, branch_id: str, name: str, quantity: int, operation: str) -> BranchInventoryItem:
        """Add to or subtract from one branch item."""
        if operation == "add":
            return self.ledger.deposit_branch(branch_id, name, quantity)
        if operation == "subtract":
            return self.ledger.withdraw_branch(branch_id, name, quantity)
        raise BusinessRuleError("Invalid operation. Must be 'add' or 'subtract'")

    def low_stock(self, branch_id: str) -> List[BranchInventoryItem]:
        return (
            self.db.query(BranchInventoryItem)
            .filter(BranchInventoryItem.branch_id == branch_id, BranchInventoryItem.status.in_(LOW_STATUSES))
            .order_by(BranchInventoryItem.quantity)
            .all()
        )

    def auto_order(self, branch_id: str, requested_by: Optional[str] = None) -> Dict[str, Any]:
        """Raise one High priority branch order covering every item below the reorder threshold."""
        items = (
            self.db.query(BranchInventoryItem)
            .filter(
                BranchInventoryItem.branch_id == branch_id,
                BranchInventoryItem.quantity < settings.low_stock_reorder_threshold,
            )
            .order_by(BranchInventoryItem.name)
            .all()
        )
        if not items:
            return {"order": None, "lowStockItems": []}

        branch_order = OrderService(self.db).create_branch_order(
            {
                "branch_id": branch_id,
                "branch_name": items[0].branch_name or branch_id,
                "expected_delivery_date": utcnow() + timedelta(days=settings.auto_order_lead_days),
                "priority": OrderPriority.HIGH,
                "notes": f"Automatic order for low stock items: {', '.join(i.name for i in items)}",
                "items": [
                    {"item_name": i.name, "quantity": reorder_quantity(i), "unit": i.unit}
                    for i in items
                ],
            },
            requested_by=requested_by or "System (auto-order)",
        )
        logger.info(f"Auto-order {branch_order.order_number} for {len(items)} low stock items at {branch_id}")
        return {"order": branch_order, "lowStockItems": items}

    def initialize(self, branch_id: str, branch_name: str) -> List[BranchInventoryItem]:
        """Add a zero-quantity row for every factory item the branch does not stock yet."""
        present = {
            name for (name,) in
            self.db.query(BranchInventoryItem.name).filter(BranchInventoryItem.branch_id == branch_id)
        }
        created = []
        for factory_item in self.db.query(InventoryItem).order_by(InventoryItem.name):
            if factory_item.name in present:
                continue
            created.append(BranchInventoryItem(
                branch_id=branch_id,
                branch_name=branch_name,
                name=factory_item.name,
                quantity=0,
                unit=factory_item.unit,
                min_stock_level=factory_item.min_stock_level,
                max_stock_level=factory_item.max_stock_level,
                category=factory_item.category,
                last_updated=utcnow(),
            ))
        self.db.add_all(created)
        self.db.flush()
        logger.info(f"Initialized {len(created)} items for branch {branch_id}")
        return created
