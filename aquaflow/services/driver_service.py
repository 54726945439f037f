"""Driver registry service."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from aquaflow.core.errors import BusinessRuleError, NotFoundError
from aquaflow.models.driver import Driver, DriverStatus
from aquaflow.models.order import BranchOrder, OrderStatus
from aquaflow.services.identifiers import daily_sequence
from aquaflow.services.order_service import OrderService
from aquaflow.services.transitions import compare_and_set_status

logger = logging.getLogger(__name__)


class DriverService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, driver_id: int) -> Driver:
        driver = self.db.get(Driver, driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        return driver

    def list(self, status: Optional[DriverStatus] = None, branch_id: Optional[str] = None) -> List[Driver]:
        query = self.db.query(Driver).filter(Driver.is_active.is_(True))
        if status:
            query = query.filter(Driver.status == status)
        if branch_id:
            query = query.filter(Driver.branch_id == branch_id)
        return query.order_by(Driver.name).all()

    def create(self, data: Dict[str, Any]) -> Driver:
        duplicate = (
            self.db.query(Driver)
            .filter(or_(Driver.email == data["email"], Driver.vehicle_number == data["vehicle_number"]))
            .first()
        )
        if duplicate is not None:
            raise BusinessRuleError("Driver with this email or vehicle number already exists")
        driver = Driver(driver_code=daily_sequence(self.db, Driver.driver_code, "DRV"), **data)
        self.db.add(driver)
        self.db.flush()
        logger.info(f"Registered driver {driver.driver_code} ({driver.name})")
        return driver

    def update(self, driver_id: int, data: Dict[str, Any]) -> Driver:
        driver = self.get(driver_id)
        for field, value in data.items():
            setattr(driver, field, value)
        self.db.flush()
        return driver

    def set_status(self, driver_id: int, status: DriverStatus) -> Driver:
        driver = self.get(driver_id)
        compare_and_set_status(self.db, Driver, driver.id, driver.status, status, label="Driver")
        return driver

    def assignments(self, driver_id: int) -> List[BranchOrder]:
        driver = self.get(driver_id)
        ids = driver.assigned_orders or []
        if not ids:
            return []
        return self.db.query(BranchOrder).filter(BranchOrder.id.in_(ids)).order_by(BranchOrder.id).all()

    def remove_order(self, driver_id: int, branch_order_id: int) -> Dict[str, Any]:
        """Take an order away from a driver and put it back in the queue."""
        driver = self.get(driver_id)
        orders = OrderService(self.db)
        branch_order = orders.get_branch_order(branch_order_id)
        if branch_order_id not in (driver.assigned_orders or []):
            raise BusinessRuleError("Order is not assigned to this driver")

        driver.release(branch_order_id)
        if branch_order.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
            branch_order.assigned_driver_id = None
        else:
            compare_and_set_status(
                self.db, BranchOrder, branch_order.id, branch_order.status, OrderStatus.PENDING,
                label="Branch order", assigned_driver_id=None,
            )
            orders.mirror_to_factory(branch_order, OrderStatus.PENDING)
        self.db.flush()
        logger.info(f"Removed {branch_order.order_number} from driver {driver.driver_code}")
        return {"driver": driver, "order": branch_order}

    def delete(self, driver_id: int) -> Driver:
        driver = self.get(driver_id)
        if driver.assigned_orders:
            raise BusinessRuleError("Cannot delete driver with active assignments")
        self.db.delete(driver)
        self.db.flush()
        return driver

    def stats(self) -> Dict[str, Any]:
        counts = dict(
            self.db.query(Driver.status, func.count(Driver.id))
            .filter(Driver.is_active.is_(True))
            .group_by(Driver.status)
            .all()
        )
        total_deliveries = self.db.query(func.coalesce(func.sum(Driver.total_deliveries), 0)).scalar()
        average_rating = self.db.query(func.avg(Driver.rating)).scalar()
        return {
            "totalDrivers": sum(counts.values()),
            "available": counts.get(DriverStatus.AVAILABLE, 0),
            "onDelivery": counts.get(DriverStatus.ON_DELIVERY, 0),
            "offDuty": counts.get(DriverStatus.OFF_DUTY, 0),
            "totalDeliveries": int(total_deliveries or 0),
            "averageRating": round(float(average_rating), 2) if average_rating is not None else 0.0,
        }
