"""Delivery driver routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireManager
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.models.driver import DriverStatus
from aquaflow.schemas.driver import DriverCreate, DriverResponse, DriverStatusUpdate, DriverUpdate
from aquaflow.schemas.order import BranchOrderResponse
from aquaflow.services.driver_service import DriverService

logger = logging.getLogger(__name__)

router = APIRouter()


def _drivers(rows):
    return [DriverResponse.model_validate(d) for d in rows]


@router.get("")
@limiter.limit("60/minute")
def list_drivers(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    status_filter: Optional[DriverStatus] = Query(None, alias="status"),
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    drivers = DriverService(db).list(status_filter, branch_id)
    return envelope(drivers=_drivers(drivers), count=len(drivers))


@router.get("/available")
@limiter.limit("60/minute")
def available_drivers(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    drivers = DriverService(db).list(DriverStatus.AVAILABLE, branch_id)
    return envelope(drivers=_drivers(drivers), count=len(drivers))


@router.get("/branch/{branch_id}")
@limiter.limit("60/minute")
def branch_drivers(request: Request, branch_id: str, db: DbSession, current_user: CurrentUser):
    drivers = DriverService(db).list(branch_id=branch_id)
    return envelope(drivers=_drivers(drivers), count=len(drivers))


@router.get("/stats")
@limiter.limit("60/minute")
def driver_stats(request: Request, db: DbSession, current_user: CurrentUser):
    return envelope(stats=DriverService(db).stats())


@router.get("/{driver_id}")
@limiter.limit("60/minute")
def get_driver(request: Request, driver_id: int, db: DbSession, current_user: CurrentUser):
    return envelope(driver=DriverResponse.model_validate(DriverService(db).get(driver_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_driver(request: Request, data: DriverCreate, db: DbSession, current_user: RequireManager):
    driver = DriverService(db).create(data.model_dump())
    db.commit()
    db.refresh(driver)
    return envelope("Driver created successfully", driver=DriverResponse.model_validate(driver))


@router.put("/{driver_id}")
@limiter.limit("30/minute")
def update_driver(request: Request, driver_id: int, data: DriverUpdate, db: DbSession, current_user: RequireManager):
    driver = DriverService(db).update(driver_id, data.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(driver)
    return envelope("Driver updated successfully", driver=DriverResponse.model_validate(driver))


@router.put("/{driver_id}/status")
@limiter.limit("30/minute")
def set_driver_status(
    request: Request, driver_id: int, data: DriverStatusUpdate, db: DbSession, current_user: RequireManager
):
    driver = DriverService(db).set_status(driver_id, data.status)
    db.commit()
    db.refresh(driver)
    return envelope("Driver status updated successfully", driver=DriverResponse.model_validate(driver))


@router.get("/{driver_id}/assignments")
@limiter.limit("60/minute")
def driver_assignments(request: Request, driver_id: int, db: DbSession, current_user: CurrentUser):
    orders = DriverService(db).assignments(driver_id)
    return envelope(orders=[BranchOrderResponse.model_validate(o) for o in orders], count=len(orders))


@router.delete("/{driver_id}/orders/{order_id}")
@limiter.limit("30/minute")
def remove_order_from_driver(
    request: Request, driver_id: int, order_id: int, db: DbSession, current_user: RequireManager
):
    """Unassign an order; open orders go back to Pending."""
    result = DriverService(db).remove_order(driver_id, order_id)
    db.commit()
    db.refresh(result["driver"])
    db.refresh(result["order"])
    return envelope(
        "Order removed from driver",
        driver=DriverResponse.model_validate(result["driver"]),
        order=BranchOrderResponse.model_validate(result["order"]),
    )


@router.delete("/{driver_id}")
@limiter.limit("30/minute")
def delete_driver(request: Request, driver_id: int, db: DbSession, current_user: RequireManager):
    DriverService(db).delete(driver_id)
    db.commit()
    return envelope("Driver deleted successfully")
