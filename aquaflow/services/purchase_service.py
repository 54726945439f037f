"""Walk-in customer purchases, paid out of branch stock."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from aquaflow.core.errors import BusinessRuleError
from aquaflow.models.purchase import CustomerPurchase, CustomerPurchaseLine
from aquaflow.services.identifiers import daily_sequence
from aquaflow.services.inventory_service import InventoryLedger

logger = logging.getLogger(__name__)


class PurchaseService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = InventoryLedger(db)

    def create(self, data: Dict[str, Any], customer_id: Optional[int] = None) -> CustomerPurchase:
        """Record a purchase and take its lines out of branch stock, all or nothing."""
        lines = data.get("items") or []
        if not lines:
            raise BusinessRuleError("Purchase must contain at least one item")
        branch_id = data["branch_id"]

        shortages = []
        for line in lines:
            row = self.ledger.find_branch_item(branch_id, line["item_name"])
            available = row.quantity if row is not None else 0
            if available < line["quantity"]:
                shortages.append({
                    "itemName": line["item_name"],
                    "available": available,
                    "required": line["quantity"],
                    "message": (
                        f"Insufficient stock for {line['item_name']}. "
                        f"Available: {available}, Required: {line['quantity']}"
                    ),
                })
        if shortages:
            raise BusinessRuleError(
                "Insufficient branch stock for purchase",
                errors=[s["message"] for s in shortages],
                insufficientItems=shortages,
            )

        for line in lines:
            self.ledger.withdraw_branch(branch_id, line["item_name"], line["quantity"])

        purchase = CustomerPurchase(
            purchase_number=daily_sequence(self.db, CustomerPurchase.purchase_number, "PUR"),
            customer_id=customer_id,
            customer_name=data["customer_name"],
            customer_email=data.get("customer_email"),
            customer_phone=data.get("customer_phone"),
            branch_id=branch_id,
            branch_name=data["branch_name"],
            lines=[
                CustomerPurchaseLine(
                    item_name=line["item_name"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    total_price=round(line["quantity"] * line["unit_price"], 2),
                )
                for line in lines
            ],
        )
        purchase.total_amount = round(sum(line.total_price for line in purchase.lines), 2)
        self.db.add(purchase)
        self.db.flush()
        logger.info(f"Purchase {purchase.purchase_number} at {branch_id}: {purchase.total_amount}")
        return purchase

    def for_branch(self, branch_id: str) -> List[CustomerPurchase]:
        return (
            self.db.query(CustomerPurchase)
            .filter(CustomerPurchase.branch_id == branch_id)
            .order_by(CustomerPurchase.created_at.desc(), CustomerPurchase.id.desc())
            .all()
        )
