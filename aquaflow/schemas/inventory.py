"""Factory and branch inventory schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from aquaflow.models.inventory import StockStatus
from aquaflow.schemas.base import CamelModel


class InventoryItemCreate(CamelModel):
    """Factory catalog item creation schema."""

    name: str = Field(min_length=1, max_length=200)
    quantity: int = Field(default=0, ge=0)
    unit: str = "pieces"
    min_stock_level: int = Field(default=10, ge=0)
    max_stock_level: int = Field(default=100, ge=0)
    supplier: Optional[str] = None
    price: float = Field(default=0, ge=0)
    category: Optional[str] = None
    description: Optional[str] = None


class InventoryItemUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    quantity: Optional[int] = Field(default=None, ge=0)
    unit: Optional[str] = None
    min_stock_level: Optional[int] = Field(default=None, ge=0)
    max_stock_level: Optional[int] = Field(default=None, ge=0)
    supplier: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = None
    description: Optional[str] = None


class InventoryItemResponse(CamelModel):
    id: int
    name: str
    quantity: int
    unit: str
    min_stock_level: int
    max_stock_level: int
    supplier: Optional[str] = None
    price: float
    category: Optional[str] = None
    description: Optional[str] = None
    status: StockStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StockAdjustment(CamelModel):
    """Add to or subtract from one item's stock."""

    quantity: int = Field(gt=0)
    operation: Literal["add", "subtract"]


class SyncToBranch(CamelModel):
    """Move factory stock to a branch."""

    branch_id: str
    branch_name: Optional[str] = None
    quantity: int = Field(gt=0)


class AddAndSync(InventoryItemCreate):
    """Create a factory item and immediately ship part of it to a branch."""

    branch_id: str
    branch_name: Optional[str] = None
    sync_quantity: int = Field(gt=0)


class BranchInventoryCreate(CamelModel):
    branch_id: str
    branch_name: Optional[str] = None
    name: str = Field(min_length=1, max_length=200)
    quantity: int = Field(default=0, ge=0)
    unit: str = "pieces"
    min_stock_level: int = Field(default=10, ge=0)
    max_stock_level: int = Field(default=100, ge=0)
    category: Optional[str] = None


class BranchInventoryUpdate(CamelModel):
    branch_name: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    unit: Optional[str] = None
    min_stock_level: Optional[int] = Field(default=None, ge=0)
    max_stock_level: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None


class BranchInventoryResponse(CamelModel):
    id: int
    branch_id: str
    branch_name: Optional[str] = None
    name: str
    quantity: int
    unit: str
    min_stock_level: int
    max_stock_level: int
    category: Optional[str] = None
    status: StockStatus
    last_updated: Optional[datetime] = None


class StockLevelUpdate(CamelModel):
    branch_id: str
    name: str
    quantity: int = Field(gt=0)
    operation: Literal["add", "subtract"]


class InitializeBranch(CamelModel):
    branch_name: str
