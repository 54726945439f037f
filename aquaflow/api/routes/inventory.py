"""Factory inventory routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireFactoryStaff
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.models.inventory import InventoryItem, StockStatus
from aquaflow.schemas.inventory import (
    AddAndSync,
    BranchInventoryResponse,
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryItemUpdate,
    StockAdjustment,
    SyncToBranch,
)
from aquaflow.services.inventory_service import InventoryLedger

logger = logging.getLogger("inventory")

router = APIRouter()


def _get_item(db, item_id: int) -> InventoryItem:
    item = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inventory item not found")
    return item


def _ensure_unique_name(db, name: str, exclude_id: int = None) -> None:
    query = db.query(InventoryItem).filter(InventoryItem.name == name)
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Item with this name already exists")


@router.get("")
@limiter.limit("60/minute")
def list_items(request: Request, db: DbSession, current_user: CurrentUser):
    items = db.query(InventoryItem).order_by(InventoryItem.name).all()
    return envelope(items=[InventoryItemResponse.model_validate(i) for i in items], count=len(items))


@router.get("/stats")
@limiter.limit("60/minute")
def inventory_stats(request: Request, db: DbSession, current_user: CurrentUser):
    return envelope(stats=InventoryLedger(db).factory_stats())


@router.get("/low-stock")
@limiter.limit("60/minute")
def low_stock_items(request: Request, db: DbSession, current_user: CurrentUser):
    items = (
        db.query(InventoryItem)
        .filter(InventoryItem.status.in_((StockStatus.LOW_STOCK, StockStatus.OUT_OF_STOCK)))
        .order_by(InventoryItem.quantity)
        .all()
    )
    return envelope(items=[InventoryItemResponse.model_validate(i) for i in items], count=len(items))


@router.post("/init-sample-data")
@limiter.limit("30/minute")
def init_sample_data(request: Request, db: DbSession, current_user: RequireFactoryStaff):
    """Load the sample catalog into an empty factory inventory."""
    items = InventoryLedger(db).seed_sample_catalog()
    db.commit()
    if not items:
        return envelope("Inventory already contains items", items=[])
    return envelope(
        f"Created {len(items)} sample items",
        items=[InventoryItemResponse.model_validate(i) for i in items],
    )


@router.post("/add-and-sync", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_and_sync(request: Request, data: AddAndSync, db: DbSession, current_user: RequireFactoryStaff):
    """Create a factory item and ship part of it to a branch in one go."""
    _ensure_unique_name(db, data.name)
    item = InventoryItem(**data.model_dump(exclude={"branch_id", "branch_name", "sync_quantity"}))
    db.add(item)
    db.flush()
    moved = InventoryLedger(db).transfer_to_branch(data.branch_id, data.name, data.sync_quantity, data.branch_name)
    db.commit()
    db.refresh(item)
    logger.info(f"Added {item.name} and synced {data.sync_quantity} to {data.branch_id}")
    return envelope("Item added and synced to branch", item=InventoryItemResponse.model_validate(item), sync=moved)


@router.get("/{item_id}")
@limiter.limit("60/minute")
def get_item(request: Request, item_id: int, db: DbSession, current_user: CurrentUser):
    return envelope(item=InventoryItemResponse.model_validate(_get_item(db, item_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_item(request: Request, data: InventoryItemCreate, db: DbSession, current_user: RequireFactoryStaff):
    _ensure_unique_name(db, data.name)
    item = InventoryItem(**data.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info(f"Inventory item created: {item.name} ({item.quantity} {item.unit})")
    return envelope("Item added successfully", item=InventoryItemResponse.model_validate(item))


@router.put("/{item_id}")
@limiter.limit("30/minute")
def update_item(
    request: Request, item_id: int, data: InventoryItemUpdate, db: DbSession, current_user: RequireFactoryStaff
):
    item = _get_item(db, item_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name") and changes["name"] != item.name:
        _ensure_unique_name(db, changes["name"], exclude_id=item.id)
    for field, value in changes.items():
        setattr(item, field, value)
    db.commit()
    db.refresh(item)
    return envelope("Item updated successfully", item=InventoryItemResponse.model_validate(item))


@router.delete("/{item_id}")
@limiter.limit("30/minute")
def delete_item(request: Request, item_id: int, db: DbSession, current_user: RequireFactoryStaff):
    item = _get_item(db, item_id)
    db.delete(item)
    db.commit()
    logger.info(f"Inventory item deleted: {item.name}")
    return envelope("Item deleted successfully")


@router.patch("/{item_id}/stock")
@limiter.limit("30/minute")
def adjust_stock(
    request: Request, item_id: int, data: StockAdjustment, db: DbSession, current_user: RequireFactoryStaff
):
    item = _get_item(db, item_id)
    ledger = InventoryLedger(db)
    if data.operation == "add":
        item = ledger.deposit(item.name, data.quantity)
    else:
        item = ledger.withdraw(item.name, data.quantity)
    db.commit()
    db.refresh(item)
    return envelope("Stock updated successfully", item=InventoryItemResponse.model_validate(item))


@router.post("/{item_id}/sync-to-branch")
@limiter.limit("30/minute")
def sync_to_branch(
    request: Request, item_id: int, data: SyncToBranch, db: DbSession, current_user: RequireFactoryStaff
):
    item = _get_item(db, item_id)
    ledger = InventoryLedger(db)
    moved = ledger.transfer_to_branch(data.branch_id, item.name, data.quantity, data.branch_name)
    db.commit()
    branch_item = ledger.find_branch_item(data.branch_id, item.name)
    return envelope(
        f"Synced {data.quantity} {item.unit} of {item.name} to {data.branch_id}",
        sync=moved,
        branchItem=BranchInventoryResponse.model_validate(branch_item),
    )
