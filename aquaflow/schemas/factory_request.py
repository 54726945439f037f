"""Factory request and customer purchase schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field

from aquaflow.models.factory_request import FactoryRequestStatus
from aquaflow.schemas.base import CamelModel


class FactoryRequestLineIn(CamelModel):
    item_name: str = Field(min_length=1)
    current_quantity: int = Field(default=0, ge=0)
    min_stock_level: int = Field(default=10, ge=0)
    max_stock_level: int = Field(default=100, ge=0)
    requested_quantity: int = Field(ge=1)
    unit: str = "pieces"


class FactoryRequestLineResponse(FactoryRequestLineIn):
    id: int


class FactoryRequestCreate(CamelModel):
    branch_id: str = Field(min_length=1)
    branch_name: str = Field(min_length=1)
    items: List[FactoryRequestLineIn] = Field(min_length=1)
    notes: Optional[str] = None


class FactoryRequestResponse(CamelModel):
    id: int
    request_code: str
    branch_id: str
    branch_name: str
    requested_by: Optional[str] = None
    status: FactoryRequestStatus
    items: List[FactoryRequestLineResponse] = Field(default_factory=list, validation_alias="lines")
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PurchaseLineIn(CamelModel):
    item_name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)


class PurchaseLineResponse(PurchaseLineIn):
    id: int
    total_price: float


class PurchaseCreate(CamelModel):
    customer_name: str = Field(min_length=1)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = None
    branch_id: str = Field(min_length=1)
    branch_name: str = Field(min_length=1)
    items: List[PurchaseLineIn] = Field(min_length=1)


class PurchaseResponse(CamelModel):
    id: int
    purchase_number: str
    customer_id: Optional[int] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    branch_id: str
    branch_name: str
    total_amount: float
    items: List[PurchaseLineResponse] = Field(default_factory=list, validation_alias="lines")
    created_at: Optional[datetime] = None
