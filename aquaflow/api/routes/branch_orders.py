"""Branch order routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireBranchStaff, RequireManager
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.models.order import BranchOrder
from aquaflow.schemas.base import StatusUpdate
from aquaflow.schemas.driver import DriverResponse
from aquaflow.schemas.order import AssignDriver, BranchOrderCreate, BranchOrderResponse, BranchOrderUpdate
from aquaflow.services.order_service import OrderService, parse_status

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
@limiter.limit("60/minute")
def list_branch_orders(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    branch_id: Optional[str] = Query(None, alias="branchId"),
    status_filter: Optional[str] = Query(None, alias="status"),
):
    query = db.query(BranchOrder)
    if branch_id:
        query = query.filter(BranchOrder.branch_id == branch_id)
    if status_filter:
        query = query.filter(BranchOrder.status == parse_status(status_filter))
    orders = query.order_by(BranchOrder.order_date.desc(), BranchOrder.id.desc()).all()
    return envelope(orders=[BranchOrderResponse.model_validate(o) for o in orders], count=len(orders))


@router.get("/stats")
@limiter.limit("60/minute")
def branch_order_stats(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    return envelope(stats=OrderService(db).branch_order_stats(branch_id))


@router.get("/{order_id}")
@limiter.limit("60/minute")
def get_branch_order(request: Request, order_id: int, db: DbSession, current_user: CurrentUser):
    return envelope(order=BranchOrderResponse.model_validate(OrderService(db).get_branch_order(order_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_branch_order(request: Request, data: BranchOrderCreate, db: DbSession, current_user: RequireBranchStaff):
    """Create a branch order and the factory order that mirrors it."""
    branch_order = OrderService(db).create_branch_order(data.model_dump(), requested_by=current_user.name)
    db.commit()
    db.refresh(branch_order)
    return envelope(
        "Branch order created successfully",
        order=BranchOrderResponse.model_validate(branch_order),
        factoryOrderId=branch_order.factory_order_id,
    )


@router.put("/{order_id}")
@limiter.limit("30/minute")
def update_branch_order(
    request: Request, order_id: int, data: BranchOrderUpdate, db: DbSession, current_user: RequireBranchStaff
):
    branch_order = OrderService(db).update_branch_order(order_id, data.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(branch_order)
    return envelope("Branch order updated successfully", order=BranchOrderResponse.model_validate(branch_order))


@router.delete("/{order_id}")
@limiter.limit("30/minute")
def delete_branch_order(request: Request, order_id: int, db: DbSession, current_user: RequireBranchStaff):
    OrderService(db).delete_branch_order(order_id)
    db.commit()
    return envelope("Branch order deleted successfully")


@router.put("/{order_id}/assign-driver")
@limiter.limit("30/minute")
def assign_driver(request: Request, order_id: int, data: AssignDriver, db: DbSession, current_user: RequireManager):
    result = OrderService(db).assign_driver(order_id, data.driver_id)
    db.commit()
    db.refresh(result["order"])
    db.refresh(result["driver"])
    return envelope(
        "Driver assigned successfully",
        order=BranchOrderResponse.model_validate(result["order"]),
        driver=DriverResponse.model_validate(result["driver"]),
    )


@router.put("/{order_id}/status")
@limiter.limit("30/minute")
def update_branch_order_status(
    request: Request, order_id: int, data: StatusUpdate, db: DbSession, current_user: RequireManager
):
    result = OrderService(db).update_branch_order_status(order_id, data.status)
    db.commit()
    db.refresh(result["order"])
    driver = result["driver"]
    return envelope(
        "Branch order status updated successfully",
        order=BranchOrderResponse.model_validate(result["order"]),
        driver=DriverResponse.model_validate(driver) if driver else None,
        itemResults=result["itemResults"],
    )
