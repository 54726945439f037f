"""Recycling bin, recycling request and collection request schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from aquaflow.models.recycling import BinStatus, CollectionRequestType, RequestStatus
from aquaflow.schemas.base import CamelModel


class BinCreate(CamelModel):
    branch_id: str = Field(min_length=1)
    branch_name: str = Field(min_length=1)
    location: str = Field(min_length=1)
    capacity: float = Field(default=100.0, gt=0)
    current_level: float = Field(default=0.0, ge=0)
    notes: Optional[str] = None


class BinUpdate(CamelModel):
    branch_name: Optional[str] = None
    location: Optional[str] = None
    capacity: Optional[float] = Field(default=None, gt=0)
    current_level: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class FillLevelUpdate(CamelModel):
    current_level: float = Field(ge=0)


class BinResponse(CamelModel):
    id: int
    bin_code: str
    branch_id: str
    branch_name: str
    location: str
    capacity: float
    current_level: float
    fill_percentage: float
    status: BinStatus
    is_notified: bool
    last_emptied: Optional[datetime] = None
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class RecyclingRequestCreate(CamelModel):
    branch_id: str = Field(min_length=1)
    branch_name: str = Field(min_length=1)
    waste_weight: float = Field(ge=0.1, le=100)
    customer_name: Optional[str] = None
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None


class ApproveBody(CamelModel):
    approved_by: Optional[str] = None


class RecyclingRequestResponse(CamelModel):
    id: int
    request_code: str
    customer_id: Optional[int] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    branch_id: str
    branch_name: str
    waste_weight: float
    points_earned: int
    status: RequestStatus
    request_date: datetime
    approved_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    approved_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None


class CollectionRequestCreate(CamelModel):
    bin_id: int
    request_type: CollectionRequestType = CollectionRequestType.EMPTY_BIN
    notes: Optional[str] = None


class CollectionRequestResponse(CamelModel):
    id: int
    request_code: str
    bin_id: int
    branch_id: str
    branch_name: str
    request_type: CollectionRequestType
    current_level: float
    fill_percentage: float
    status: RequestStatus
    requested_by: Optional[str] = None
    notes: Optional[str] = None
    request_date: datetime
    approved_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
