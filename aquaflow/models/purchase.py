"""Walk-in customer purchases at a branch."""

from __future__ import annotations

from typing import Optional, List

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aquaflow.db.base import Base, TimestampMixin


class CustomerPurchase(Base, TimestampMixin):
    __tablename__ = "customer_purchases"

    id: Mapped[int] = mapped_column(primary_key=True)
    purchase_number: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    customer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    branch_id: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    branch_name: Mapped[str] = mapped_column(String(200), nullable=False)
    total_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=0, nullable=False)

    lines: Mapped[List["CustomerPurchaseLine"]] = relationship(
        "CustomerPurchaseLine", back_populates="purchase", cascade="all, delete-orphan",
        order_by="CustomerPurchaseLine.id",
    )


class CustomerPurchaseLine(Base):
    __tablename__ = "customer_purchase_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    purchase_id: Mapped[int] = mapped_column(
        ForeignKey("customer_purchases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    total_price: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)

    purchase: Mapped["CustomerPurchase"] = relationship("CustomerPurchase", back_populates="lines")
