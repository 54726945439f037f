"""Delivery orchestration.

Two independent procedures, picked by ``deliveryType``:

- factory: the factory ships an order. Requires Pending/Processing, checks
  every line against factory stock and reports all shortfalls at once, then
  withdraws the stock and marks the pair Shipped.
- branch: the branch receives a shipped order. Requires Shipped, deposits
  every line into branch stock (a failing line is reported, the rest still
  go through), frees the driver and marks the pair Delivered.
"""

import logging
from datetime import datetime, time, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from aquaflow.core.errors import AppError, BusinessRuleError, PreconditionError
from aquaflow.db.base import utcnow
from aquaflow.models.order import BranchOrder, Order, OrderStatus
from aquaflow.services.order_service import SHIPPABLE_STATUSES, OrderService, item_result
from aquaflow.services.transitions import compare_and_set_status

logger = logging.getLogger(__name__)

DELIVERY_TYPES = ("factory", "branch")


class DeliveryService:
    """Ships factory orders and receives them at branches."""

    def __init__(self, db: Session):
        self.db = db
        self.orders = OrderService(db)
        self.ledger = self.orders.ledger

    def process(self, delivery_type: str, order_id: int) -> Dict[str, Any]:
        if delivery_type == "factory":
            return self.process_factory_delivery(order_id)
        if delivery_type == "branch":
            return self.process_branch_delivery(order_id)
        raise BusinessRuleError(
            "Invalid delivery type. Must be 'factory' or 'branch'",
            allowed=list(DELIVERY_TYPES),
        )

    def process_factory_delivery(self, order_id: int) -> Dict[str, Any]:
        """Ship a factory order out of factory stock."""
        order = self.orders.get_order(order_id)
        if order.status not in SHIPPABLE_STATUSES:
            raise PreconditionError(
                f"Order cannot be shipped. Current status: {order.status.value}",
                current_status=order.status.value,
            )

        insufficient = [
            {k: v for k, v in problem.items() if k != "reason"} | {"status": problem["reason"]}
            for problem in self.ledger.check_factory_availability(order.lines)
        ]
        if insufficient:
            raise BusinessRuleError(
                "Insufficient inventory for delivery",
                insufficientItems=insufficient,
            )

        compare_and_set_status(
            self.db, Order, order.id, SHIPPABLE_STATUSES, OrderStatus.SHIPPED, label="Order",
        )
        updates = self.ledger.withdraw_lines(order.lines)
        branch_order = self.orders.mirror_to_branch(order, OrderStatus.SHIPPED)
        self.db.flush()
        logger.info(f"Factory delivery: order {order.order_number} shipped")
        return {"order": order, "branchOrder": branch_order, "inventoryUpdates": updates}

    def process_branch_delivery(self, branch_order_id: int) -> Dict[str, Any]:
        """Receive a shipped branch order into branch stock."""
        branch_order = self.orders.get_branch_order(branch_order_id)
        if branch_order.status != OrderStatus.SHIPPED:
            raise PreconditionError(
                f"Order must be shipped before delivery. Current status: {branch_order.status.value}",
                current_status=branch_order.status.value,
            )

        compare_and_set_status(
            self.db, BranchOrder, branch_order.id, OrderStatus.SHIPPED, OrderStatus.DELIVERED,
            label="Branch order", delivered_date=utcnow(),
        )

        results: List[Dict[str, Any]] = []
        for line in branch_order.lines:
            try:
                with self.db.begin_nested():
                    row = self.ledger.deposit_branch(
                        branch_order.branch_id, line.item_name, line.quantity, branch_order.branch_name
                    )
                results.append(item_result(line, True, branchQuantity=row.quantity, unit=row.unit))
            except (AppError, SQLAlchemyError) as e:
                logger.warning(
                    f"Branch delivery {branch_order.order_number}: {line.item_name} not applied: {e}"
                )
                results.append(item_result(line, False, str(e)))

        delivered = [r for r in results if r["success"]]
        summary = {
            "totalItems": len(delivered),
            "totalQuantity": sum(r["quantity"] for r in delivered),
            "itemsDelivered": delivered,
            "itemsFailed": [r for r in results if not r["success"]],
        }

        driver = self.orders.release_driver(branch_order, delivered=True)
        order = self.orders.mirror_to_factory(branch_order, OrderStatus.DELIVERED)
        self.db.flush()
        logger.info(
            f"Branch delivery: {branch_order.order_number} delivered, "
            f"{summary['totalItems']}/{len(results)} items applied"
        )
        return {
            "order": branch_order,
            "factoryOrder": order,
            "driver": driver,
            "deliverySummary": summary,
            "itemResults": results,
        }

    def stats(self) -> Dict[str, Any]:
        counts = dict(
            self.db.query(BranchOrder.status, func.count(BranchOrder.id))
            .group_by(BranchOrder.status)
            .all()
        )
        start_of_day = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)
        delivered_today = (
            self.db.query(func.count(BranchOrder.id))
            .filter(
                BranchOrder.status == OrderStatus.DELIVERED,
                BranchOrder.delivered_date >= start_of_day,
            )
            .scalar()
        )
        return {
            "pendingDeliveries": counts.get(OrderStatus.PENDING, 0) + counts.get(OrderStatus.ACCEPTED, 0),
            "inProgress": counts.get(OrderStatus.PROCESSING, 0),
            "shipped": counts.get(OrderStatus.SHIPPED, 0),
            "delivered": counts.get(OrderStatus.DELIVERED, 0),
            "deliveredToday": delivered_today or 0,
        }

    def history(self, branch_id: Optional[str] = None, limit: int = 50) -> List[BranchOrder]:
        query = self.db.query(BranchOrder).filter(BranchOrder.status == OrderStatus.DELIVERED)
        if branch_id:
            query = query.filter(BranchOrder.branch_id == branch_id)
        return query.order_by(BranchOrder.delivered_date.desc(), BranchOrder.id.desc()).limit(limit).all()
