"""Inventory Ledger Service - every change to factory and branch stock.

All stock movements go through ``InventoryLedger``:

- ``withdraw`` / ``deposit`` on factory stock,
- ``withdraw_branch`` / ``deposit_branch`` on branch stock, where a deposit
  upserts the (branch, item) row and seeds unit/min/max from the factory
  catalog entry,
- ``check_factory_availability`` to validate a whole list of lines before
  touching anything, so all-or-nothing callers can fail with one complete
  report and no partial decrement.

Withdrawals are conditional UPDATEs (``quantity >= :requested``) so two
concurrent requests cannot both take the last units. The derived stock status
is recomputed in the same statement, and by the model hook for ORM writes.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from aquaflow.core.errors import BusinessRuleError, InsufficientStockError, NotFoundError
from aquaflow.db.base import utcnow
from aquaflow.models.inventory import (
    DEFAULT_MAX_STOCK_LEVEL,
    DEFAULT_MIN_STOCK_LEVEL,
    DEFAULT_UNIT,
    BranchInventoryItem,
    InventoryItem,
    StockStatus,
    stock_status_expr,
)

logger = logging.getLogger(__name__)

# Catalog loaded by the "init sample data" endpoint on an empty factory
SAMPLE_CATALOG = [
    {"name": "RO Membranes", "quantity": 50, "category": "Filters", "price": 4500},
    {"name": "Mud-filters", "quantity": 75, "category": "Filters", "price": 1200},
    {"name": "Mineral Cartridge", "quantity": 60, "category": "Cartridges", "price": 2200},
    {"name": "UV Cartridge", "quantity": 40, "category": "Cartridges", "price": 3800},
    {"name": "Water Pumps", "quantity": 25, "category": "Equipment", "price": 9500},
    {"name": "5L Water Bottles", "quantity": 200, "category": "Bottles", "price": 150},
    {"name": "10L Water Bottles", "quantity": 150, "category": "Bottles", "price": 250},
    {"name": "20L Water Bottles", "quantity": 100, "category": "Bottles", "price": 400},
]


def line_name(line: Any) -> str:
    if isinstance(line, dict):
        return line.get("item_name") or line.get("itemName")
    return line.item_name


def line_quantity(line: Any) -> int:
    return int(line["quantity"] if isinstance(line, dict) else line.quantity)


class InventoryLedger:
    """Stock movements for the factory and branch ledgers."""

    def __init__(self, db: Session):
        self.db = db

    # ===== FACTORY =====

    def find_factory_item(self, name: str) -> Optional[InventoryItem]:
        return self.db.query(InventoryItem).filter(InventoryItem.name == name).first()

    def get_factory_item(self, name: str) -> InventoryItem:
        item = self.find_factory_item(name)
        if item is None:
            raise NotFoundError(f"Item {name} not found in inventory", itemName=name)
        return item

    def check_factory_availability(self, lines: Iterable[Any]) -> List[Dict[str, Any]]:
        """Return one problem entry per line that the factory cannot cover.

        Lines naming the same item are summed before comparing.
        """
        wanted: Dict[str, int] = {}
        for line in lines:
            wanted[line_name(line)] = wanted.get(line_name(line), 0) + line_quantity(line)

        problems = []
        for name, required in wanted.items():
            item = self.find_factory_item(name)
            if item is None:
                problems.append({
                    "itemName": name,
                    "reason": "not_found",
                    "message": f"Item {name} not found in inventory",
                    "required": required,
                })
            elif item.quantity < required:
                problems.append({
                    "itemName": name,
                    "reason": "insufficient",
                    "message": (
                        f"Insufficient stock for {name}. "
                        f"Available: {item.quantity}, Required: {required}"
                    ),
                    "available": item.quantity,
                    "required": required,
                })
        return problems

    def withdraw(self, name: str, quantity: int) -> InventoryItem:
        """Take ``quantity`` units of ``name`` out of factory stock."""
        if quantity <= 0:
            raise BusinessRuleError("Quantity must be greater than 0")
        item = self.get_factory_item(name)
        self.db.flush()
        new_quantity = InventoryItem.quantity - quantity
        result = self.db.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item.id, InventoryItem.quantity >= quantity)
            .values(
                quantity=new_quantity,
                status=stock_status_expr(InventoryItem, new_quantity),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(item)
        if result.rowcount == 0:
            raise InsufficientStockError(name, item.quantity, quantity)
        logger.info(f"Factory stock: {name} -{quantity} -> {item.quantity}")
        return item

    def deposit(self, name: str, quantity: int) -> InventoryItem:
        """Return ``quantity`` units of ``name`` to factory stock."""
        if quantity <= 0:
            raise BusinessRuleError("Quantity must be greater than 0")
        item = self.get_factory_item(name)
        self.db.flush()
        new_quantity = InventoryItem.quantity + quantity
        self.db.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item.id)
            .values(
                quantity=new_quantity,
                status=stock_status_expr(InventoryItem, new_quantity),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(item)
        logger.info(f"Factory stock: {name} +{quantity} -> {item.quantity}")
        return item

    def withdraw_lines(self, lines: Iterable[Any]) -> List[Dict[str, Any]]:
        """Validate every line, then withdraw all of them.

        Raises ``BusinessRuleError`` listing every shortfall when any line
        cannot be covered; nothing is withdrawn in that case.
        """
        lines = list(lines)
        problems = self.check_factory_availability(lines)
        if problems:
            raise BusinessRuleError(
                "Insufficient inventory for one or more items",
                errors=[p["message"] for p in problems],
                insufficientItems=problems,
            )
        updates = []
        for line in lines:
            item = self.withdraw(line_name(line), line_quantity(line))
            updates.append({
                "itemName": item.name,
                "quantityReduced": line_quantity(line),
                "newFactoryQuantity": item.quantity,
                "status": item.status.value,
            })
        return updates

    # ===== BRANCH =====

    def find_branch_item(self, branch_id: str, name: str) -> Optional[BranchInventoryItem]:
        return (
            self.db.query(BranchInventoryItem)
            .filter(BranchInventoryItem.branch_id == branch_id, BranchInventoryItem.name == name)
            .first()
        )

    def deposit_branch(
        self,
        branch_id: str,
        name: str,
        quantity: int,
        branch_name: Optional[str] = None,
    ) -> BranchInventoryItem:
        """Add stock to a branch, creating the row on first delivery."""
        if quantity <= 0:
            raise BusinessRuleError("Quantity must be greater than 0")
        row = self.find_branch_item(branch_id, name)
        if row is None:
            factory_item = self.find_factory_item(name)
            row = BranchInventoryItem(
                branch_id=branch_id,
                branch_name=branch_name or "Unknown Branch",
                name=name,
                quantity=quantity,
                unit=factory_item.unit if factory_item else DEFAULT_UNIT,
                min_stock_level=factory_item.min_stock_level if factory_item else DEFAULT_MIN_STOCK_LEVEL,
                max_stock_level=factory_item.max_stock_level if factory_item else DEFAULT_MAX_STOCK_LEVEL,
                category=factory_item.category if factory_item else None,
                last_updated=utcnow(),
            )
            self.db.add(row)
            self.db.flush()
            logger.info(f"Branch {branch_id} stock: created {name} with {quantity}")
            return row

        self.db.flush()
        new_quantity = BranchInventoryItem.quantity + quantity
        values = {
            "quantity": new_quantity,
            "status": stock_status_expr(BranchInventoryItem, new_quantity),
            "last_updated": utcnow(),
            "updated_at": utcnow(),
        }
        if branch_name:
            values["branch_name"] = branch_name
        self.db.execute(
            update(BranchInventoryItem)
            .where(BranchInventoryItem.id == row.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(row)
        logger.info(f"Branch {branch_id} stock: {name} +{quantity} -> {row.quantity}")
        return row

    def withdraw_branch(self, branch_id: str, name: str, quantity: int) -> BranchInventoryItem:
        if quantity <= 0:
            raise BusinessRuleError("Quantity must be greater than 0")
        row = self.find_branch_item(branch_id, name)
        if row is None:
            raise NotFoundError(f"Item {name} not found in branch inventory", itemName=name)
        self.db.flush()
        new_quantity = BranchInventoryItem.quantity - quantity
        result = self.db.execute(
            update(BranchInventoryItem)
            .where(BranchInventoryItem.id == row.id, BranchInventoryItem.quantity >= quantity)
            .values(
                quantity=new_quantity,
                status=stock_status_expr(BranchInventoryItem, new_quantity),
                last_updated=utcnow(),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(row)
        if result.rowcount == 0:
            raise InsufficientStockError(name, row.quantity, quantity)
        logger.info(f"Branch {branch_id} stock: {name} -{quantity} -> {row.quantity}")
        return row

    def transfer_to_branch(
        self, branch_id: str, name: str, quantity: int, branch_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """Move stock from the factory to a branch."""
        factory_item = self.withdraw(name, quantity)
        branch_item = self.deposit_branch(branch_id, name, quantity, branch_name=branch_name)
        return {
            "itemName": name,
            "quantity": quantity,
            "factoryQuantity": factory_item.quantity,
            "branchQuantity": branch_item.quantity,
        }

    # ===== REPORTING =====

    def factory_stats(self) -> Dict[str, Any]:
        total_items = self.db.query(func.count(InventoryItem.id)).scalar() or 0
        total_quantity = self.db.query(func.coalesce(func.sum(InventoryItem.quantity), 0)).scalar()
        total_value = self.db.query(
            func.coalesce(func.sum(InventoryItem.quantity * InventoryItem.price), 0)
        ).scalar()
        by_status = dict(
            self.db.query(InventoryItem.status, func.count(InventoryItem.id))
            .group_by(InventoryItem.status)
            .all()
        )
        return {
            "totalItems": total_items,
            "totalQuantity": int(total_quantity or 0),
            "totalValue": float(total_value or 0),
            "inStock": by_status.get(StockStatus.IN_STOCK, 0),
            "lowStock": by_status.get(StockStatus.LOW_STOCK, 0),
            "outOfStock": by_status.get(StockStatus.OUT_OF_STOCK, 0),
        }

    def branch_stats(self, branch_id: Optional[str] = None) -> Dict[str, Any]:
        query = self.db.query(BranchInventoryItem)
        if branch_id:
            query = query.filter(BranchInventoryItem.branch_id == branch_id)
        rows = query.all()
        return {
            "totalItems": len(rows),
            "totalQuantity": sum(r.quantity for r in rows),
            "inStock": sum(1 for r in rows if r.status == StockStatus.IN_STOCK),
            "lowStock": sum(1 for r in rows if r.status == StockStatus.LOW_STOCK),
            "outOfStock": sum(1 for r in rows if r.status == StockStatus.OUT_OF_STOCK),
            "branches": len({r.branch_id for r in rows}),
        }

    def seed_sample_catalog(self) -> List[InventoryItem]:
        """Create the sample catalog when the factory has no items yet."""
        if self.db.query(InventoryItem.id).first() is not None:
            return []
        items = [
            InventoryItem(
                name=entry["name"],
                quantity=entry["quantity"],
                category=entry["category"],
                price=entry["price"],
                unit=DEFAULT_UNIT,
                min_stock_level=DEFAULT_MIN_STOCK_LEVEL,
                max_stock_level=max(DEFAULT_MAX_STOCK_LEVEL, entry["quantity"] * 2),
                supplier="AquaFlow Factory",
            )
            for entry in SAMPLE_CATALOG
        ]
        self.db.add_all(items)
        self.db.flush()
        logger.info(f"Seeded {len(items)} sample inventory items")
        return items
