"""Emergency request, driver bonus and dispatch helper schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from aquaflow.models.emergency import (
    BonusStatus,
    DriverBonusStatus,
    EmergencyPriority,
    EmergencyStatus,
    EmergencyType,
)
from aquaflow.schemas.base import CamelModel


class EmergencyCreate(CamelModel):
    brigade_id: str = Field(min_length=1)
    brigade_name: str = Field(min_length=1)
    brigade_location: str = Field(min_length=1)
    request_type: EmergencyType = EmergencyType.WATER_SUPPLY
    priority: EmergencyPriority = EmergencyPriority.HIGH
    water_level: Optional[str] = None
    description: str = Field(min_length=1)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class EmergencyStatusUpdate(CamelModel):
    status: str
    admin_notes: Optional[str] = None
    assigned_branch_id: Optional[str] = None
    assigned_driver_id: Optional[int] = None
    estimated_delivery_time: Optional[datetime] = None


class EmergencyResponse(CamelModel):
    id: int
    request_code: str
    brigade_id: str
    brigade_name: str
    brigade_location: str
    request_type: EmergencyType
    priority: EmergencyPriority
    status: EmergencyStatus
    water_level: Optional[str] = None
    description: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    assigned_branch_id: Optional[str] = None
    assigned_driver_id: Optional[int] = None
    admin_notes: Optional[str] = None
    request_date: datetime
    estimated_delivery_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    bonus_eligible: bool
    bonus_amount: float
    bonus_status: BonusStatus


class DriverBonusResponse(CamelModel):
    id: int
    driver_id: int
    emergency_request_id: int
    bonus_amount: float
    bonus_type: str
    brigade_name: Optional[str] = None
    brigade_location: Optional[str] = None
    delivery_date: datetime
    status: DriverBonusStatus
    month: int
    year: int
    notes: Optional[str] = None


class NearestBranchQuery(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    max_distance: float = Field(default=50000, gt=0)


class Coordinates(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class RouteRequest(CamelModel):
    branch_id: str
    emergency_coords: Coordinates


class GenerateLocationRequest(CamelModel):
    branch_id: str
    max_distance_km: float = Field(default=30, gt=0)
