"""Delivery driver model."""

from __future__ import annotations

from enum import Enum
from typing import Optional, List

from sqlalchemy import JSON, Boolean, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from aquaflow.db.base import Base, TimestampMixin, enum_type


class DriverStatus(str, Enum):
    AVAILABLE = "Available"
    ON_DELIVERY = "On Delivery"
    OFF_DUTY = "Off Duty"


class VehicleType(str, Enum):
    VAN = "Van"
    TRUCK = "Truck"
    MOTORCYCLE = "Motorcycle"


class Driver(Base, TimestampMixin):
    """A driver that carries branch orders from the factory."""

    __tablename__ = "drivers"

    id: Mapped[int] = mapped_column(primary_key=True)
    driver_code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    license_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    vehicle_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    vehicle_type: Mapped[VehicleType] = mapped_column(
        enum_type(VehicleType), default=VehicleType.VAN, nullable=False
    )
    status: Mapped[DriverStatus] = mapped_column(
        enum_type(DriverStatus), default=DriverStatus.AVAILABLE, nullable=False, index=True
    )
    branch_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    current_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # ids of the branch orders currently carried by this driver
    assigned_orders: Mapped[List[int]] = mapped_column(JSON, default=list, nullable=False)
    total_deliveries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rating: Mapped[float] = mapped_column(Float, default=5.0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def assign(self, branch_order_id: int) -> None:
        self.assigned_orders = [*(self.assigned_orders or []), branch_order_id]
        self.status = DriverStatus.ON_DELIVERY

    def release(self, branch_order_id: int, delivered: bool = False) -> None:
        """Drop an order from the driver's assignments and make them available again."""
        self.assigned_orders = [oid for oid in (self.assigned_orders or []) if oid != branch_order_id]
        self.status = DriverStatus.AVAILABLE
        if delivered:
            self.total_deliveries = (self.total_deliveries or 0) + 1
