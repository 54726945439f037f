"""Stock replenishment requests from branches to the factory."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, List

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aquaflow.db.base import Base, TimestampMixin, enum_type


class FactoryRequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FULFILLED = "fulfilled"


class FactoryRequest(Base, TimestampMixin):
    """A branch asking the factory to top up specific items."""

    __tablename__ = "factory_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    request_code: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)
    branch_id: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    branch_name: Mapped[str] = mapped_column(String(200), nullable=False)
    requested_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    status: Mapped[FactoryRequestStatus] = mapped_column(
        enum_type(FactoryRequestStatus), default=FactoryRequestStatus.PENDING, nullable=False, index=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    lines: Mapped[List["FactoryRequestLine"]] = relationship(
        "FactoryRequestLine", back_populates="request", cascade="all, delete-orphan",
        order_by="FactoryRequestLine.id",
    )


class FactoryRequestLine(Base):
    __tablename__ = "factory_request_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    request_id: Mapped[int] = mapped_column(
        ForeignKey("factory_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    current_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_stock_level: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    max_stock_level: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), default="pieces", nullable=False)

    request: Mapped["FactoryRequest"] = relationship("FactoryRequest", back_populates="lines")
