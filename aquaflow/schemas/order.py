"""Factory order and branch order schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from aquaflow.models.order import OrderPriority, OrderSource, OrderStatus
from aquaflow.schemas.base import CamelModel


class OrderLineIn(CamelModel):
    item_name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit: str = "pieces"


class OrderLineResponse(CamelModel):
    id: int
    item_name: str
    quantity: int
    unit: str


class OrderCreate(CamelModel):
    """Direct factory order."""

    branch_name: str = Field(min_length=1)
    branch_id: Optional[str] = None
    branch_location: Optional[str] = None
    items: List[OrderLineIn] = Field(min_length=1)
    expected_delivery_date: Optional[datetime] = None
    priority: OrderPriority = OrderPriority.MEDIUM
    notes: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None


class OrderResponse(CamelModel):
    id: int
    order_number: str
    branch_name: str
    branch_id: Optional[str] = None
    branch_location: Optional[str] = None
    items: List[OrderLineResponse] = Field(default_factory=list, validation_alias="lines")
    total_quantity: int
    order_date: datetime
    expected_delivery_date: Optional[datetime] = None
    status: OrderStatus
    priority: OrderPriority
    source: OrderSource
    original_branch_order_id: Optional[int] = None
    notes: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    accepted_date: Optional[datetime] = None
    accepted_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class AcceptOrder(CamelModel):
    accepted_by: Optional[str] = None


class BranchOrderCreate(CamelModel):
    branch_id: str = Field(min_length=1)
    branch_name: str = Field(min_length=1)
    branch_location: Optional[str] = None
    items: List[OrderLineIn] = Field(min_length=1)
    expected_delivery_date: Optional[datetime] = None
    priority: OrderPriority = OrderPriority.MEDIUM
    notes: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None


class BranchOrderUpdate(CamelModel):
    branch_location: Optional[str] = None
    items: Optional[List[OrderLineIn]] = None
    expected_delivery_date: Optional[datetime] = None
    priority: Optional[OrderPriority] = None
    notes: Optional[str] = None


class BranchOrderResponse(CamelModel):
    id: int
    order_number: str
    branch_id: str
    branch_name: str
    branch_location: Optional[str] = None
    items: List[OrderLineResponse] = Field(default_factory=list, validation_alias="lines")
    total_quantity: int
    order_date: datetime
    expected_delivery_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    status: OrderStatus
    priority: OrderPriority
    factory_order_id: Optional[int] = None
    assigned_driver_id: Optional[int] = None
    requested_by: Optional[str] = None
    notes: Optional[str] = None


class AssignDriver(CamelModel):
    driver_id: int


class DeliveryRequest(CamelModel):
    delivery_type: str
    order_id: int
