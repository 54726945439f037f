"""Factory waste bin schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from aquaflow.models.factory_waste import FactoryBinStatus, WasteType
from aquaflow.schemas.base import CamelModel


class WasteDelivery(CamelModel):
    source_branch: str = Field(min_length=1)
    source_branch_id: str = Field(min_length=1)
    waste_weight: float = Field(gt=0)
    waste_type: WasteType
    collection_request_id: str = Field(min_length=1)
    processed_by: Optional[str] = None


class WasteEntryResponse(CamelModel):
    id: int
    date: datetime
    source_branch: str
    source_branch_id: str
    waste_weight: float
    waste_type: WasteType
    collection_request_id: str
    processed_by: Optional[str] = None


class FactoryBinResponse(CamelModel):
    id: int
    bin_code: str
    name: str
    location: str
    capacity: float
    current_level: float
    fill_percentage: int
    status: FactoryBinStatus
    total_waste_collected: float
    last_emptied: datetime
    updated_at: Optional[datetime] = None
