"""The factory's main waste bin and the log of waste delivered into it."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from aquaflow.db.base import Base, TimestampMixin, enum_type, utcnow

MAIN_BIN_CODE = "FACTORY_MAIN_BIN"


class FactoryBinStatus(str, Enum):
    ACTIVE = "Active"
    FULL = "Full"
    MAINTENANCE = "Maintenance"
    INACTIVE = "Inactive"


class WasteType(str, Enum):
    PLASTIC = "Plastic"
    PAPER = "Paper"
    GLASS = "Glass"
    METAL = "Metal"
    ORGANIC = "Organic"
    MIXED = "Mixed"


class FactoryWasteBin(Base, TimestampMixin):
    """The single factory bin that collected branch waste is tipped into."""

    __tablename__ = "factory_waste_bins"

    id: Mapped[int] = mapped_column(primary_key=True)
    bin_code: Mapped[str] = mapped_column(String(80), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), default="Factory Main Waste Collection Bin", nullable=False)
    location: Mapped[str] = mapped_column(String(255), default="Factory Main Collection Area", nullable=False)
    capacity: Mapped[float] = mapped_column(Float, nullable=False)
    current_level: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    fill_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[FactoryBinStatus] = mapped_column(
        enum_type(FactoryBinStatus), default=FactoryBinStatus.ACTIVE, nullable=False
    )
    total_waste_collected: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    last_emptied: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_by: Mapped[str] = mapped_column(String(200), default="System", nullable=False)

    entries: Mapped[List["FactoryWasteEntry"]] = relationship(
        back_populates="bin",
        cascade="all, delete-orphan",
        order_by="FactoryWasteEntry.id",
    )

    @property
    def available_capacity(self) -> float:
        return max(0.0, self.capacity - self.current_level)

    def refresh_fill(self) -> None:
        self.fill_percentage = round(self.current_level / self.capacity * 100) if self.capacity else 0
        # Maintenance and Inactive are set by hand and survive level changes.
        if self.status in (FactoryBinStatus.ACTIVE, FactoryBinStatus.FULL, None):
            self.status = FactoryBinStatus.FULL if self.fill_percentage >= 100 else FactoryBinStatus.ACTIVE


@event.listens_for(FactoryWasteBin, "before_insert")
@event.listens_for(FactoryWasteBin, "before_update")
def _refresh_factory_fill(mapper, connection, target):
    if target.current_level is None:
        target.current_level = 0.0
    target.refresh_fill()


class FactoryWasteEntry(Base):
    """One delivery of branch waste into the factory bin."""

    __tablename__ = "factory_waste_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    bin_id: Mapped[int] = mapped_column(
        ForeignKey("factory_waste_bins.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    source_branch: Mapped[str] = mapped_column(String(200), nullable=False)
    source_branch_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    waste_weight: Mapped[float] = mapped_column(Float, nullable=False)
    waste_type: Mapped[WasteType] = mapped_column(enum_type(WasteType), nullable=False)
    collection_request_id: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    bin: Mapped[FactoryWasteBin] = relationship(back_populates="entries")
