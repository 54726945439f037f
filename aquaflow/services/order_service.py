"""Order lifecycle service.

Owns the factory ``Order`` / ``BranchOrder`` pair:

Pending -> Accepted -> Processing -> Shipped -> Delivered, with Cancelled
reachable from the early states. Every transition is a conditional update
on the status the caller expects (see ``services.transitions``) and the
linked record of the pair is updated in the same transaction, so the two
rows can never disagree after a commit.

Side effects per transition:
- accept (factory): Pending only; reserves factory stock for every line, all
  or nothing.
- status Shipped (factory): from Pending/Processing only; withdraws factory
  stock, all or nothing.
- status Delivered (factory): from Shipped only; deposits every line into the
  branch ledger, reporting per line.
- status Delivered (branch): moves every line factory -> branch, skipping
  lines the factory cannot cover, and frees the driver.
Any other valid status is written as-is.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from aquaflow.core.errors import AppError, BusinessRuleError, NotFoundError, PreconditionError
from aquaflow.db.base import utcnow
from aquaflow.models.branch import Branch
from aquaflow.models.driver import Driver, DriverStatus
from aquaflow.models.order import (
    BranchOrder,
    BranchOrderLine,
    Order,
    OrderLine,
    OrderPriority,
    OrderSource,
    OrderStatus,
)
from aquaflow.services.identifiers import daily_sequence
from aquaflow.services.inventory_service import InventoryLedger, line_name, line_quantity
from aquaflow.services.transitions import compare_and_set_status

logger = logging.getLogger(__name__)

SHIPPABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING)
ASSIGNABLE_STATUSES = (OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.PROCESSING)
CLOSED_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


def parse_status(value: Any) -> OrderStatus:
    """Validate a requested status against the order status vocabulary."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise BusinessRuleError(f"Invalid status '{value}'. Allowed values: {allowed}")


def item_result(line, success: bool, reason: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    result = {
        "itemName": line.item_name,
        "quantity": line.quantity,
        "success": success,
        "reason": reason,
    }
    result.update(extra)
    return result


class OrderService:
    """Factory and branch order operations."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = InventoryLedger(db)

    # ===== LOOKUPS =====

    def get_order(self, order_id: int) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def get_branch_order(self, branch_order_id: int) -> BranchOrder:
        branch_order = self.db.get(BranchOrder, branch_order_id)
        if branch_order is None:
            raise NotFoundError("Branch order not found")
        return branch_order

    def linked_branch_order(self, order: Order) -> Optional[BranchOrder]:
        if order.original_branch_order_id is None:
            return None
        return self.db.get(BranchOrder, order.original_branch_order_id)

    def linked_order(self, branch_order: BranchOrder) -> Optional[Order]:
        if branch_order.factory_order_id is None:
            return None
        return self.db.get(Order, branch_order.factory_order_id)

    def resolve_branch_id(self, order: Order) -> str:
        """Branch code for an order, looking it up by branch name when unset."""
        if order.branch_id:
            return order.branch_id
        branch = self.db.query(Branch).filter(Branch.name == order.branch_name).first()
        if branch is None:
            raise BusinessRuleError(f"Cannot resolve branch for order {order.order_number}")
        return branch.code

    # ===== MIRRORING =====

    def mirror_to_branch(self, order: Order, status: OrderStatus) -> Optional[BranchOrder]:
        branch_order = self.linked_branch_order(order)
        if branch_order is not None and branch_order.status != status:
            branch_order.status = status
            if status == OrderStatus.DELIVERED:
                branch_order.delivered_date = utcnow()
            logger.info(f"Mirrored {status.value} to branch order {branch_order.order_number}")
        return branch_order

    def mirror_to_factory(self, branch_order: BranchOrder, status: OrderStatus) -> Optional[Order]:
        order = self.linked_order(branch_order)
        if order is not None and order.status != status:
            order.status = status
            logger.info(f"Mirrored {status.value} to factory order {order.order_number}")
        return order

    # ===== FACTORY ORDERS =====

    def create_order(self, data: Dict[str, Any]) -> Order:
        """Create a direct factory order.

        Every line must name a catalog item the factory can currently cover;
        all problems are reported together.
        """
        lines = data.get("items") or []
        if not lines:
            raise BusinessRuleError("Order must contain at least one item")
        problems = self.ledger.check_factory_availability(lines)
        if problems:
            raise BusinessRuleError(
                "Inventory validation failed",
                errors=[p["message"] for p in problems],
            )

        order = Order(
            order_number=daily_sequence(self.db, Order.order_number, "ORD"),
            branch_name=data["branch_name"],
            branch_id=data.get("branch_id"),
            branch_location=data.get("branch_location"),
            expected_delivery_date=data.get("expected_delivery_date"),
            priority=data.get("priority") or OrderPriority.MEDIUM,
            source=OrderSource.DIRECT,
            notes=data.get("notes"),
            contact_person=data.get("contact_person"),
            contact_phone=data.get("contact_phone"),
            lines=[
                OrderLine(item_name=line_name(line), quantity=line_quantity(line), unit=line.get("unit") or "pieces")
                for line in lines
            ],
        )
        order.recompute_total()
        self.db.add(order)
        self.db.flush()
        logger.info(f"Created order {order.order_number} for {order.branch_name}")
        return order

    def accept_order(self, order_id: int, accepted_by: Optional[str] = None) -> Dict[str, Any]:
        """Accept a pending order and reserve factory stock for it."""
        order = self.get_order(order_id)
        if order.status != OrderStatus.PENDING:
            raise PreconditionError(
                f"Order cannot be accepted. Current status: {order.status.value}",
                current_status=order.status.value,
            )
        problems = self.ledger.check_factory_availability(order.lines)
        if problems:
            raise BusinessRuleError(
                "Cannot accept order due to inventory issues",
                errors=[p["message"] for p in problems],
                insufficientItems=problems,
            )

        compare_and_set_status(
            self.db, Order, order.id, OrderStatus.PENDING, OrderStatus.ACCEPTED,
            label="Order", accepted_date=utcnow(), accepted_by=accepted_by,
        )
        updates = self.ledger.withdraw_lines(order.lines)
        self.mirror_to_branch(order, OrderStatus.ACCEPTED)
        self.db.flush()
        logger.info(f"Order {order.order_number} accepted by {accepted_by}")
        return {"order": order, "inventoryUpdates": updates}

    def update_order_status(self, order_id: int, requested: Any) -> Dict[str, Any]:
        """Set a factory order's status, applying the stock side effects.

        Shipped and Delivered have predecessors they require; other statuses
        only need to be valid values.
        """
        status = parse_status(requested)
        order = self.get_order(order_id)
        result: Dict[str, Any] = {"order": order, "inventoryUpdates": [], "itemResults": [], "skippedItems": []}

        if status == OrderStatus.SHIPPED:
            if order.status not in SHIPPABLE_STATUSES:
                raise PreconditionError(
                    f"Order cannot be shipped. Current status: {order.status.value}",
                    current_status=order.status.value,
                )
            problems = self.ledger.check_factory_availability(order.lines)
            shortages = [p for p in problems if p["reason"] == "insufficient"]
            if shortages:
                raise BusinessRuleError(
                    shortages[0]["message"],
                    errors=[p["message"] for p in shortages],
                    insufficientItems=shortages,
                )
            # Lines for items no longer in the catalog ship without a stock movement.
            missing = {p["itemName"] for p in problems}
            for name in sorted(missing):
                logger.warning(f"Order {order.order_number}: {name} is not in the catalog, shipping without stock")
            compare_and_set_status(self.db, Order, order.id, SHIPPABLE_STATUSES, status, label="Order")
            result["inventoryUpdates"] = self.ledger.withdraw_lines(
                [line for line in order.lines if line.item_name not in missing]
            )
            result["skippedItems"] = sorted(missing)

        elif status == OrderStatus.DELIVERED:
            if order.status != OrderStatus.SHIPPED:
                raise PreconditionError(
                    f"Order cannot be delivered. Current status: {order.status.value}",
                    current_status=order.status.value,
                )
            branch_id = self.resolve_branch_id(order)
            compare_and_set_status(self.db, Order, order.id, OrderStatus.SHIPPED, status, label="Order")
            result["itemResults"] = self._deposit_lines(order.lines, branch_id, order.branch_name)

        else:
            compare_and_set_status(self.db, Order, order.id, order.status, status, label="Order")

        self.mirror_to_branch(order, status)
        self.db.flush()
        logger.info(f"Order {order.order_number} status -> {status.value}")
        return result

    def _deposit_lines(self, lines, branch_id: str, branch_name: Optional[str]) -> List[Dict[str, Any]]:
        """Deposit each line into branch stock; a failing line is reported and skipped."""
        results = []
        for line in lines:
            try:
                with self.db.begin_nested():
                    row = self.ledger.deposit_branch(branch_id, line.item_name, line.quantity, branch_name)
                results.append(item_result(line, True, branchQuantity=row.quantity))
            except (AppError, SQLAlchemyError) as e:
                logger.warning(f"Branch {branch_id}: could not deposit {line.item_name}: {e}")
                results.append(item_result(line, False, str(e)))
        return results

    def delete_order(self, order_id: int) -> Order:
        order = self.get_order(order_id)
        branch_order = self.linked_branch_order(order)
        if branch_order is not None:
            branch_order.factory_order_id = None
        self.db.delete(order)
        self.db.flush()
        return order

    # ===== BRANCH ORDERS =====

    def create_branch_order(self, data: Dict[str, Any], requested_by: Optional[str] = None) -> BranchOrder:
        """Create a branch order together with its factory counterpart."""
        lines = data.get("items") or []
        if not lines:
            raise BusinessRuleError("Order must contain at least one item")

        branch_order = BranchOrder(
            order_number=daily_sequence(self.db, BranchOrder.order_number, "BO"),
            branch_id=data["branch_id"],
            branch_name=data["branch_name"],
            branch_location=data.get("branch_location"),
            expected_delivery_date=data.get("expected_delivery_date"),
            priority=data.get("priority") or OrderPriority.MEDIUM,
            requested_by=requested_by,
            notes=data.get("notes"),
            lines=[
                BranchOrderLine(item_name=line_name(line), quantity=line_quantity(line), unit=line.get("unit") or "pieces")
                for line in lines
            ],
        )
        branch_order.recompute_total()
        self.db.add(branch_order)
        self.db.flush()

        order = Order(
            order_number=daily_sequence(self.db, Order.order_number, "ORD"),
            branch_name=branch_order.branch_name,
            branch_id=branch_order.branch_id,
            branch_location=branch_order.branch_location,
            expected_delivery_date=branch_order.expected_delivery_date,
            priority=branch_order.priority,
            source=OrderSource.BRANCH_REQUEST,
            original_branch_order_id=branch_order.id,
            notes=f"Branch Request: {branch_order.notes or 'No notes'}",
            contact_person=data.get("contact_person") or requested_by,
            contact_phone=data.get("contact_phone"),
            lines=[
                OrderLine(item_name=line.item_name, quantity=line.quantity, unit=line.unit)
                for line in branch_order.lines
            ],
        )
        order.recompute_total()
        self.db.add(order)
        self.db.flush()

        branch_order.factory_order_id = order.id
        self.db.flush()
        logger.info(
            f"Created branch order {branch_order.order_number} "
            f"with factory order {order.order_number}"
        )
        return branch_order

    def update_branch_order(self, branch_order_id: int, data: Dict[str, Any]) -> BranchOrder:
        """Edit a branch order's lines or details while it is still Pending."""
        branch_order = self.get_branch_order(branch_order_id)
        if branch_order.status != OrderStatus.PENDING:
            raise PreconditionError(
                f"Only pending orders can be edited. Current status: {branch_order.status.value}",
                current_status=branch_order.status.value,
            )
        order = self.linked_order(branch_order)
        for field in ("branch_location", "expected_delivery_date", "priority", "notes"):
            if field in data and data[field] is not None:
                setattr(branch_order, field, data[field])
                if order is not None and field != "notes":
                    setattr(order, field, data[field])
        if data.get("items"):
            branch_order.lines = [
                BranchOrderLine(item_name=line_name(line), quantity=line_quantity(line), unit=line.get("unit") or "pieces")
                for line in data["items"]
            ]
            branch_order.recompute_total()
            if order is not None:
                order.lines = [
                    OrderLine(item_name=line.item_name, quantity=line.quantity, unit=line.unit)
                    for line in branch_order.lines
                ]
                order.recompute_total()
        self.db.flush()
        return branch_order

    def delete_branch_order(self, branch_order_id: int) -> BranchOrder:
        """Delete a branch order; its factory order goes too while still Pending."""
        branch_order = self.get_branch_order(branch_order_id)
        order = self.linked_order(branch_order)
        driver = branch_order.assigned_driver
        if driver is not None and branch_order.id in (driver.assigned_orders or []):
            driver.release(branch_order.id)
        if order is not None:
            if order.status == OrderStatus.PENDING:
                branch_order.factory_order_id = None
                self.db.flush()
                self.db.delete(order)
            else:
                order.original_branch_order_id = None
        self.db.delete(branch_order)
        self.db.flush()
        return branch_order

    def assign_driver(self, branch_order_id: int, driver_id: int) -> Dict[str, Any]:
        """Put an available driver on a branch order and mark it Processing."""
        branch_order = self.get_branch_order(branch_order_id)
        driver = self.db.get(Driver, driver_id)
        if driver is None or driver.status != DriverStatus.AVAILABLE or not driver.is_active:
            raise NotFoundError("Driver not found or not available")
        if branch_order.status not in ASSIGNABLE_STATUSES:
            raise PreconditionError(
                f"Cannot assign a driver to this order. Current status: {branch_order.status.value}",
                current_status=branch_order.status.value,
            )

        compare_and_set_status(
            self.db, Driver, driver.id, DriverStatus.AVAILABLE, DriverStatus.ON_DELIVERY, label="Driver",
        )
        compare_and_set_status(
            self.db, BranchOrder, branch_order.id, ASSIGNABLE_STATUSES, OrderStatus.PROCESSING,
            label="Branch order", assigned_driver_id=driver.id,
        )
        driver.assign(branch_order.id)
        self.mirror_to_factory(branch_order, OrderStatus.PROCESSING)
        self.db.flush()
        logger.info(f"Driver {driver.driver_code} assigned to {branch_order.order_number}")
        return {"order": branch_order, "driver": driver}

    def update_branch_order_status(self, branch_order_id: int, requested: Any) -> Dict[str, Any]:
        """Set a branch order's status; Delivered moves the stock and frees the driver."""
        status = parse_status(requested)
        branch_order = self.get_branch_order(branch_order_id)
        result: Dict[str, Any] = {"order": branch_order, "itemResults": [], "driver": None}

        if status == OrderStatus.DELIVERED:
            if branch_order.status in CLOSED_STATUSES:
                raise PreconditionError(
                    f"Order cannot be delivered. Current status: {branch_order.status.value}",
                    current_status=branch_order.status.value,
                )
            open_statuses = [s for s in OrderStatus if s not in CLOSED_STATUSES]
            compare_and_set_status(
                self.db, BranchOrder, branch_order.id, open_statuses, status,
                label="Branch order", delivered_date=utcnow(),
            )
            result["itemResults"] = self._transfer_lines(branch_order)
            result["driver"] = self.release_driver(branch_order, delivered=True)
        else:
            compare_and_set_status(
                self.db, BranchOrder, branch_order.id, branch_order.status, status, label="Branch order",
            )

        self.mirror_to_factory(branch_order, status)
        self.db.flush()
        logger.info(f"Branch order {branch_order.order_number} status -> {status.value}")
        return result

    def _transfer_lines(self, branch_order: BranchOrder) -> List[Dict[str, Any]]:
        """Move each line factory -> branch; lines the factory cannot cover are skipped."""
        results = []
        for line in branch_order.lines:
            factory_item = self.ledger.find_factory_item(line.item_name)
            if factory_item is None:
                logger.warning(f"{branch_order.order_number}: {line.item_name} not in factory inventory, skipped")
                results.append(item_result(line, False, "Item not found in factory inventory"))
                continue
            if factory_item.quantity < line.quantity:
                logger.warning(
                    f"{branch_order.order_number}: insufficient {line.item_name} "
                    f"({factory_item.quantity} < {line.quantity}), skipped"
                )
                results.append(item_result(
                    line, False, "Insufficient factory stock",
                    available=factory_item.quantity, required=line.quantity,
                ))
                continue
            try:
                with self.db.begin_nested():
                    moved = self.ledger.transfer_to_branch(
                        branch_order.branch_id, line.item_name, line.quantity, branch_order.branch_name
                    )
                results.append(item_result(
                    line, True,
                    factoryQuantity=moved["factoryQuantity"],
                    branchQuantity=moved["branchQuantity"],
                ))
            except (AppError, SQLAlchemyError) as e:
                logger.warning(f"{branch_order.order_number}: transfer of {line.item_name} failed: {e}")
                results.append(item_result(line, False, str(e)))
        return results

    def release_driver(self, branch_order: BranchOrder, delivered: bool) -> Optional[Driver]:
        driver = branch_order.assigned_driver
        if driver is None:
            return None
        driver.release(branch_order.id, delivered=delivered)
        logger.info(f"Driver {driver.driver_code} released from {branch_order.order_number}")
        return driver

    # ===== REPORTING =====

    @staticmethod
    def _status_counts(db: Session, model) -> Dict[str, int]:
        counts = dict(db.query(model.status, func.count(model.id)).group_by(model.status).all())
        return {status.value: counts.get(status, 0) for status in OrderStatus}

    def order_stats(self) -> Dict[str, Any]:
        counts = self._status_counts(self.db, Order)
        total_quantity = self.db.query(func.coalesce(func.sum(Order.total_quantity), 0)).scalar()
        return {
            "totalOrders": sum(counts.values()),
            "byStatus": counts,
            "pendingOrders": counts[OrderStatus.PENDING.value] + counts[OrderStatus.PROCESSING.value],
            "totalQuantity": int(total_quantity or 0),
        }

    def branch_order_stats(self, branch_id: Optional[str] = None) -> Dict[str, Any]:
        query = self.db.query(BranchOrder.status, func.count(BranchOrder.id))
        if branch_id:
            query = query.filter(BranchOrder.branch_id == branch_id)
        counts = dict(query.group_by(BranchOrder.status).all())
        by_status = {status.value: counts.get(status, 0) for status in OrderStatus}
        return {"totalOrders": sum(by_status.values()), "byStatus": by_status}

    def recent_activities(self, limit: int = 10) -> List[Dict[str, Any]]:
        orders = self.db.query(Order).order_by(Order.updated_at.desc(), Order.id.desc()).limit(limit).all()
        return [
            {
                "id": order.id,
                "orderNumber": order.order_number,
                "branchName": order.branch_name,
                "status": order.status.value,
                "totalQuantity": order.total_quantity,
                "updatedAt": order.updated_at.isoformat() if order.updated_at else None,
            }
            for order in orders
        ]

    def monthly_counts(self, months: int = 6) -> List[Dict[str, Any]]:
        """Order counts for the last ``months`` calendar months, oldest first."""
        now = datetime.now(timezone.utc)
        buckets = []
        year, month = now.year, now.month
        for _ in range(months):
            buckets.append((year, month))
            month -= 1
            if month == 0:
                year, month = year - 1, 12
        buckets.reverse()

        start = datetime(buckets[0][0], buckets[0][1], 1, tzinfo=timezone.utc)
        counts: Dict[tuple, Dict[str, int]] = {b: {"orders": 0, "quantity": 0} for b in buckets}
        for order_date, quantity in (
            self.db.query(Order.order_date, Order.total_quantity)
            .filter(Order.order_date >= start - timedelta(days=1))
            .all()
        ):
            key = (order_date.year, order_date.month)
            if key in counts:
                counts[key]["orders"] += 1
                counts[key]["quantity"] += quantity or 0
        return [
            {"year": y, "month": m, "label": f"{y}-{m:02d}", **counts[(y, m)]}
            for y, m in buckets
        ]
