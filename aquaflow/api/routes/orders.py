"""Factory order routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireFactoryStaff, RequireManager
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.models.order import Order, OrderStatus
from aquaflow.schemas.base import StatusUpdate
from aquaflow.schemas.order import AcceptOrder, OrderCreate, OrderResponse
from aquaflow.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
@limiter.limit("60/minute")
def list_orders(request: Request, db: DbSession, current_user: CurrentUser):
    orders = db.query(Order).order_by(Order.order_date.desc(), Order.id.desc()).all()
    return envelope(orders=[OrderResponse.model_validate(o) for o in orders], count=len(orders))


@router.get("/pending")
@limiter.limit("60/minute")
def pending_orders(request: Request, db: DbSession, current_user: CurrentUser):
    """Newest ten orders still waiting on the factory."""
    orders = (
        db.query(Order)
        .filter(Order.status.in_((OrderStatus.PENDING, OrderStatus.PROCESSING)))
        .order_by(Order.order_date.desc(), Order.id.desc())
        .limit(10)
        .all()
    )
    return envelope(orders=[OrderResponse.model_validate(o) for o in orders], count=len(orders))


@router.get("/stats")
@limiter.limit("60/minute")
def order_stats(request: Request, db: DbSession, current_user: CurrentUser):
    return envelope(stats=OrderService(db).order_stats())


@router.get("/recent-activities")
@limiter.limit("60/minute")
def recent_activities(request: Request, db: DbSession, current_user: CurrentUser):
    return envelope(activities=OrderService(db).recent_activities())


@router.get("/monthly")
@limiter.limit("60/minute")
def monthly_orders(request: Request, db: DbSession, current_user: CurrentUser):
    return envelope(data=OrderService(db).monthly_counts())


@router.get("/{order_id}")
@limiter.limit("60/minute")
def get_order(request: Request, order_id: int, db: DbSession, current_user: CurrentUser):
    return envelope(order=OrderResponse.model_validate(OrderService(db).get_order(order_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_order(request: Request, data: OrderCreate, db: DbSession, current_user: RequireManager):
    order = OrderService(db).create_order(data.model_dump())
    db.commit()
    db.refresh(order)
    return envelope("Order created successfully", order=OrderResponse.model_validate(order))


@router.put("/{order_id}/accept")
@limiter.limit("30/minute")
def accept_order(
    request: Request, order_id: int, db: DbSession, current_user: RequireFactoryStaff,
    data: Optional[AcceptOrder] = None,
):
    """Accept a pending order, reserving factory stock for every line."""
    accepted_by = (data.accepted_by if data else None) or current_user.name
    result = OrderService(db).accept_order(order_id, accepted_by)
    db.commit()
    db.refresh(result["order"])
    return envelope(
        "Order accepted successfully",
        order=OrderResponse.model_validate(result["order"]),
        inventoryUpdates=result["inventoryUpdates"],
    )


@router.put("/{order_id}/status")
@limiter.limit("30/minute")
def update_order_status(
    request: Request, order_id: int, data: StatusUpdate, db: DbSession, current_user: RequireFactoryStaff
):
    result = OrderService(db).update_order_status(order_id, data.status)
    db.commit()
    db.refresh(result["order"])
    return envelope(
        "Order status updated successfully",
        order=OrderResponse.model_validate(result["order"]),
        inventoryUpdates=result["inventoryUpdates"],
        itemResults=result["itemResults"],
        skippedItems=result["skippedItems"],
    )


@router.delete("/{order_id}")
@limiter.limit("30/minute")
def delete_order(request: Request, order_id: int, db: DbSession, current_user: RequireFactoryStaff):
    OrderService(db).delete_order(order_id)
    db.commit()
    return envelope("Order deleted successfully")
