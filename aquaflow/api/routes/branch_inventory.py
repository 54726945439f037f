"""Branch inventory routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireBranchStaff, RequireManager
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.schemas.inventory import (
    BranchInventoryCreate,
    BranchInventoryResponse,
    BranchInventoryUpdate,
    InitializeBranch,
    StockLevelUpdate,
)
from aquaflow.schemas.order import BranchOrderResponse
from aquaflow.services.branch_inventory_service import BranchInventoryService

logger = logging.getLogger(__name__)

router = APIRouter()


def _items(rows):
    return [BranchInventoryResponse.model_validate(r) for r in rows]


@router.get("")
@limiter.limit("60/minute")
def list_branch_inventory(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    rows = BranchInventoryService(db).list(branch_id)
    return envelope(items=_items(rows), count=len(rows))


@router.get("/statistics")
@limiter.limit("60/minute")
def branch_inventory_statistics(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    return envelope(statistics=BranchInventoryService(db).ledger.branch_stats(branch_id))


@router.get("/branch/{branch_id}")
@limiter.limit("60/minute")
def get_branch_inventory(request: Request, branch_id: str, db: DbSession, current_user: CurrentUser):
    rows = BranchInventoryService(db).list(branch_id)
    return envelope(items=_items(rows), count=len(rows))


@router.get("/branch/{branch_id}/low-stock")
@limiter.limit("60/minute")
def get_low_stock(request: Request, branch_id: str, db: DbSession, current_user: CurrentUser):
    rows = BranchInventoryService(db).low_stock(branch_id)
    return envelope(lowStockItems=_items(rows), count=len(rows))


@router.post("/branch/{branch_id}/auto-order")
@limiter.limit("30/minute")
def auto_order(request: Request, branch_id: str, db: DbSession, current_user: RequireBranchStaff):
    """Raise a replenishment order for every item below the reorder threshold."""
    result = BranchInventoryService(db).auto_order(branch_id, requested_by=current_user.name)
    db.commit()
    if result["order"] is None:
        return envelope("No low stock items found", order=None, lowStockItems=[])
    return envelope(
        "Automatic order created for low stock items",
        order=BranchOrderResponse.model_validate(result["order"]),
        lowStockItems=_items(result["lowStockItems"]),
    )


@router.post("/branch/{branch_id}/initialize")
@limiter.limit("30/minute")
def initialize_branch(
    request: Request, branch_id: str, data: InitializeBranch, db: DbSession, current_user: RequireManager
):
    created = BranchInventoryService(db).initialize(branch_id, data.branch_name)
    db.commit()
    return envelope(f"Initialized {len(created)} items", items=_items(created))


@router.put("/stock-level")
@limiter.limit("30/minute")
def update_stock_level(request: Request, data: StockLevelUpdate, db: DbSession, current_user: RequireBranchStaff):
    row = BranchInventoryService(db).update_stock_level(data.branch_id, data.name, data.quantity, data.operation)
    db.commit()
    db.refresh(row)
    return envelope("Stock level updated successfully", item=BranchInventoryResponse.model_validate(row))


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_branch_item(request: Request, data: BranchInventoryCreate, db: DbSession, current_user: RequireManager):
    row = BranchInventoryService(db).create(data.model_dump())
    db.commit()
    db.refresh(row)
    return envelope("Branch inventory item created", item=BranchInventoryResponse.model_validate(row))


@router.put("/{item_id}")
@limiter.limit("30/minute")
def update_branch_item(
    request: Request, item_id: int, data: BranchInventoryUpdate, db: DbSession, current_user: RequireManager
):
    row = BranchInventoryService(db).update(item_id, data.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(row)
    return envelope("Branch inventory item updated", item=BranchInventoryResponse.model_validate(row))


@router.delete("/{item_id}")
@limiter.limit("30/minute")
def delete_branch_item(request: Request, item_id: int, db: DbSession, current_user: RequireManager):
    BranchInventoryService(db).delete(item_id)
    db.commit()
    return envelope("Branch inventory item deleted")
