"""Recycling bins and the requests that fill and empty them."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aquaflow.db.base import Base, TimestampMixin, enum_type, utcnow

DEFAULT_BIN_CAPACITY = 100.0


class BinStatus(str, Enum):
    """Banded fill status of a recycling bin."""

    EMPTY = "Empty"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


# (lower bound %, status), checked top-down
BIN_BANDS = (
    (80.0, BinStatus.CRITICAL),
    (60.0, BinStatus.HIGH),
    (40.0, BinStatus.MEDIUM),
    (20.0, BinStatus.LOW),
)


def fill_percentage(current_level: float, capacity: float) -> float:
    if not capacity:
        return 0.0
    return round(current_level / capacity * 100, 2)


def bin_status(percentage: float) -> BinStatus:
    for threshold, band in BIN_BANDS:
        if percentage >= threshold:
            return band
    return BinStatus.EMPTY


class RequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    COMPLETED = "Completed"


class CollectionRequestType(str, Enum):
    EMPTY_BIN = "Empty Bin"
    NINETY_PERCENT_FULL = "90% Full"


class RecyclingBin(Base, TimestampMixin):
    """A waste bin at a branch, filled by approved recycling requests."""

    __tablename__ = "recycling_bins"

    id: Mapped[int] = mapped_column(primary_key=True)
    bin_code: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)
    branch_id: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    branch_name: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    capacity: Mapped[float] = mapped_column(Float, default=DEFAULT_BIN_CAPACITY, nullable=False)
    current_level: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    fill_percentage: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    status: Mapped[BinStatus] = mapped_column(
        enum_type(BinStatus), default=BinStatus.EMPTY, nullable=False, index=True
    )
    is_notified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_emptied: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def set_level(self, level: float) -> None:
        """Clamp the level into [0, capacity] and refresh derived fields."""
        capacity = self.capacity if self.capacity is not None else DEFAULT_BIN_CAPACITY
        self.current_level = max(0.0, min(float(level), capacity))
        self.fill_percentage = fill_percentage(self.current_level, capacity)
        self.status = bin_status(self.fill_percentage)


@event.listens_for(RecyclingBin, "before_insert")
@event.listens_for(RecyclingBin, "before_update")
def _refresh_fill(mapper, connection, target):
    if target.capacity is None:
        target.capacity = DEFAULT_BIN_CAPACITY
    target.set_level(target.current_level or 0.0)


class RecyclingRequest(Base, TimestampMixin):
    """A customer's drop-off of recyclable waste at a branch."""

    __tablename__ = "recycling_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    request_code: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)
    customer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    branch_id: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    branch_name: Mapped[str] = mapped_column(String(200), nullable=False)
    waste_weight: Mapped[float] = mapped_column(Float, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        enum_type(RequestStatus), default=RequestStatus.PENDING, nullable=False, index=True
    )
    request_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    approved_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class CollectionRequest(Base, TimestampMixin):
    """A branch's request to have its bin emptied."""

    __tablename__ = "collection_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    request_code: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)
    bin_id: Mapped[int] = mapped_column(
        ForeignKey("recycling_bins.id", ondelete="CASCADE"), nullable=False, index=True
    )
    branch_id: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    branch_name: Mapped[str] = mapped_column(String(200), nullable=False)
    request_type: Mapped[CollectionRequestType] = mapped_column(
        enum_type(CollectionRequestType), default=CollectionRequestType.EMPTY_BIN, nullable=False
    )
    # snapshot of the bin when the request was raised
    current_level: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    fill_percentage: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        enum_type(RequestStatus), default=RequestStatus.PENDING, nullable=False, index=True
    )
    requested_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    request_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    approved_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    bin: Mapped["RecyclingBin"] = relationship("RecyclingBin")
