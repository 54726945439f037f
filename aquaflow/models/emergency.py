"""Emergency water requests from fire brigades and the driver bonuses they earn."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aquaflow.db.base import Base, TimestampMixin, enum_type, utcnow


class EmergencyType(str, Enum):
    WATER_SUPPLY = "Emergency Water Supply"
    FIRE_CONTROL = "Fire Control"
    DISASTER_RELIEF = "Disaster Relief"


class EmergencyPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class EmergencyStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    SENT_TO_BRANCH_MANAGER = "Approved - Sent to Branch Manager"
    REJECTED = "Rejected"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class BonusStatus(str, Enum):
    NOT_ELIGIBLE = "Not Eligible"
    ELIGIBLE = "Eligible"
    BONUS_CREATED = "Bonus Created"
    BONUS_PAID = "Bonus Paid"


class DriverBonusStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    PAID = "Paid"


class EmergencyRequest(Base, TimestampMixin):
    """A dispatch ticket raised by a fire brigade."""

    __tablename__ = "emergency_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    request_code: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)
    brigade_id: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    brigade_name: Mapped[str] = mapped_column(String(200), nullable=False)
    brigade_location: Mapped[str] = mapped_column(String(255), nullable=False)
    request_type: Mapped[EmergencyType] = mapped_column(
        enum_type(EmergencyType), default=EmergencyType.WATER_SUPPLY, nullable=False
    )
    priority: Mapped[EmergencyPriority] = mapped_column(
        enum_type(EmergencyPriority), default=EmergencyPriority.HIGH, nullable=False
    )
    status: Mapped[EmergencyStatus] = mapped_column(
        enum_type(EmergencyStatus), default=EmergencyStatus.PENDING, nullable=False, index=True
    )
    water_level: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    assigned_branch_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    assigned_driver_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    request_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    estimated_delivery_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_delivery_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    bonus_eligible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    bonus_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), default=5000, nullable=False)
    bonus_status: Mapped[BonusStatus] = mapped_column(
        enum_type(BonusStatus), default=BonusStatus.ELIGIBLE, nullable=False
    )

    assigned_driver: Mapped[Optional["User"]] = relationship("User", foreign_keys=[assigned_driver_id])


class DriverBonus(Base, TimestampMixin):
    """Bonus paid to a driver for completing an emergency delivery."""

    __tablename__ = "driver_bonuses"

    id: Mapped[int] = mapped_column(primary_key=True)
    driver_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    emergency_request_id: Mapped[int] = mapped_column(
        ForeignKey("emergency_requests.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    bonus_amount: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    bonus_type: Mapped[str] = mapped_column(String(50), default="Emergency Delivery", nullable=False)
    brigade_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    brigade_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    delivery_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    status: Mapped[DriverBonusStatus] = mapped_column(
        enum_type(DriverBonusStatus), default=DriverBonusStatus.APPROVED, nullable=False
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    emergency_request: Mapped["EmergencyRequest"] = relationship("EmergencyRequest")


# Forward references
from aquaflow.models.user import User  # noqa: E402
