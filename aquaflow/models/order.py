"""Factory order and branch order models.

A branch stock request is stored twice: once as a ``BranchOrder`` owned by the
branch and once as the factory-facing ``Order``. The two rows reference each
other (``Order.original_branch_order_id`` / ``BranchOrder.factory_order_id``)
and always carry the same status.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aquaflow.db.base import Base, TimestampMixin, enum_type, utcnow


class OrderStatus(str, Enum):
    """Status shared by factory and branch orders."""

    PENDING = "Pending"
    ACCEPTED = "Accepted"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class OrderPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class OrderSource(str, Enum):
    DIRECT = "Direct"
    BRANCH_REQUEST = "Branch Request"


class Order(Base, TimestampMixin):
    """An order fulfilled by the factory."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    branch_name: Mapped[str] = mapped_column(String(200), nullable=False)
    branch_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    branch_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    total_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expected_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[OrderStatus] = mapped_column(
        enum_type(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True
    )
    priority: Mapped[OrderPriority] = mapped_column(
        enum_type(OrderPriority), default=OrderPriority.MEDIUM, nullable=False
    )
    source: Mapped[OrderSource] = mapped_column(
        enum_type(OrderSource), default=OrderSource.DIRECT, nullable=False
    )
    # plain reference; the branch order owns the foreign key of the pair
    original_branch_order_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_person: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    accepted_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    lines: Mapped[List["OrderLine"]] = relationship(
        "OrderLine", back_populates="order", cascade="all, delete-orphan", order_by="OrderLine.id"
    )

    def recompute_total(self) -> int:
        self.total_quantity = sum(line.quantity for line in self.lines)
        return self.total_quantity


class OrderLine(Base):
    """A single item line in a factory order."""

    __tablename__ = "order_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), default="pieces", nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="lines")


class BranchOrder(Base, TimestampMixin):
    """A stock request raised by a branch."""

    __tablename__ = "branch_orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    branch_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    branch_name: Mapped[str] = mapped_column(String(200), nullable=False)
    branch_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    total_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    order_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    expected_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[OrderStatus] = mapped_column(
        enum_type(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True
    )
    priority: Mapped[OrderPriority] = mapped_column(
        enum_type(OrderPriority), default=OrderPriority.MEDIUM, nullable=False
    )
    factory_order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )
    assigned_driver_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    requested_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    lines: Mapped[List["BranchOrderLine"]] = relationship(
        "BranchOrderLine", back_populates="branch_order", cascade="all, delete-orphan",
        order_by="BranchOrderLine.id",
    )
    assigned_driver: Mapped[Optional["Driver"]] = relationship("Driver", foreign_keys=[assigned_driver_id])

    def recompute_total(self) -> int:
        self.total_quantity = sum(line.quantity for line in self.lines)
        return self.total_quantity


class BranchOrderLine(Base):
    """A single item line in a branch order."""

    __tablename__ = "branch_order_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    branch_order_id: Mapped[int] = mapped_column(
        ForeignKey("branch_orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), default="pieces", nullable=False)

    branch_order: Mapped["BranchOrder"] = relationship("BranchOrder", back_populates="lines")


# Forward references
from aquaflow.models.driver import Driver  # noqa: E402
