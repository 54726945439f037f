"""Branch model."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from sqlalchemy import Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from aquaflow.db.base import Base, TimestampMixin, enum_type


class BranchStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    MAINTENANCE = "Maintenance"


class Branch(Base, TimestampMixin):
    """A retail branch. Other records refer to it by ``code`` (e.g. ``BR001``)."""

    __tablename__ = "branches"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    manager_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    status: Mapped[BranchStatus] = mapped_column(
        enum_type(BranchStatus), default=BranchStatus.ACTIVE, nullable=False
    )
    capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
