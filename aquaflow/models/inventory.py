"""Factory and branch inventory models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Integer, Numeric, String, Text, UniqueConstraint, case, event
from sqlalchemy.orm import Mapped, mapped_column

from aquaflow.db.base import Base, TimestampMixin, enum_type, utcnow

DEFAULT_MIN_STOCK_LEVEL = 10
DEFAULT_MAX_STOCK_LEVEL = 100
DEFAULT_UNIT = "pieces"


class StockStatus(str, Enum):
    """Stock status derived from quantity vs the minimum stock level."""

    IN_STOCK = "In Stock"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"


def stock_status(quantity: int, min_stock_level: int) -> StockStatus:
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= min_stock_level:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def stock_status_expr(model, new_quantity):
    """SQL counterpart of ``stock_status`` for set-based UPDATE statements."""
    return case(
        (new_quantity <= 0, StockStatus.OUT_OF_STOCK.value),
        (new_quantity <= model.min_stock_level, StockStatus.LOW_STOCK.value),
        else_=StockStatus.IN_STOCK.value,
    )


class InventoryItem(Base, TimestampMixin):
    """A catalog item held in factory stock."""

    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, index=True, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), default=DEFAULT_UNIT, nullable=False)
    min_stock_level: Mapped[int] = mapped_column(Integer, default=DEFAULT_MIN_STOCK_LEVEL, nullable=False)
    max_stock_level: Mapped[int] = mapped_column(Integer, default=DEFAULT_MAX_STOCK_LEVEL, nullable=False)
    supplier: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[StockStatus] = mapped_column(
        enum_type(StockStatus), default=StockStatus.OUT_OF_STOCK, nullable=False
    )


class BranchInventoryItem(Base, TimestampMixin):
    """Stock of one catalog item at one branch."""

    __tablename__ = "branch_inventory_items"
    __table_args__ = (
        UniqueConstraint("branch_id", "name", name="uq_branch_inventory_branch_name"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    branch_id: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    branch_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), default=DEFAULT_UNIT, nullable=False)
    min_stock_level: Mapped[int] = mapped_column(Integer, default=DEFAULT_MIN_STOCK_LEVEL, nullable=False)
    max_stock_level: Mapped[int] = mapped_column(Integer, default=DEFAULT_MAX_STOCK_LEVEL, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[StockStatus] = mapped_column(
        enum_type(StockStatus), default=StockStatus.OUT_OF_STOCK, nullable=False
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


@event.listens_for(InventoryItem, "before_insert")
@event.listens_for(InventoryItem, "before_update")
@event.listens_for(BranchInventoryItem, "before_insert")
@event.listens_for(BranchInventoryItem, "before_update")
def _refresh_stock_status(mapper, connection, target):
    # column defaults are applied after this hook runs
    if target.quantity is None:
        target.quantity = 0
    if target.min_stock_level is None:
        target.min_stock_level = DEFAULT_MIN_STOCK_LEVEL
    target.status = stock_status(target.quantity, target.min_stock_level)
