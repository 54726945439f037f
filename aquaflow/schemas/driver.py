"""Delivery driver schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from aquaflow.models.driver import DriverStatus, VehicleType
from aquaflow.schemas.base import CamelModel


class DriverCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=1, max_length=50)
    email: EmailStr
    license_number: Optional[str] = None
    vehicle_number: str = Field(min_length=1, max_length=50)
    vehicle_type: VehicleType = VehicleType.VAN
    branch_id: Optional[str] = None
    current_location: Optional[str] = None


class DriverUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = None
    license_number: Optional[str] = None
    vehicle_type: Optional[VehicleType] = None
    branch_id: Optional[str] = None
    current_location: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    is_active: Optional[bool] = None


class DriverStatusUpdate(CamelModel):
    status: DriverStatus


class DriverResponse(CamelModel):
    id: int
    driver_code: str
    name: str
    phone: str
    email: str
    license_number: Optional[str] = None
    vehicle_number: str
    vehicle_type: VehicleType
    status: DriverStatus
    branch_id: Optional[str] = None
    current_location: Optional[str] = None
    assigned_orders: List[int] = []
    total_deliveries: int
    rating: float
    is_active: bool
    created_at: Optional[datetime] = None
