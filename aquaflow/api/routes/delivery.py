"""Delivery routes: factory shipping and branch receiving."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireBranchStaff, RequireFactoryStaff, RequireManager
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.schemas.driver import DriverResponse
from aquaflow.schemas.order import BranchOrderResponse, DeliveryRequest, OrderResponse
from aquaflow.services.delivery_service import DeliveryService

logger = logging.getLogger(__name__)

router = APIRouter()


def _render(result: dict) -> dict:
    """Turn a delivery result's ORM objects into response schemas."""
    rendered = dict(result)
    if "branchOrder" in result:
        # factory delivery: "order" is the factory order
        rendered["order"] = OrderResponse.model_validate(result["order"])
        branch_order = result["branchOrder"]
        rendered["branchOrder"] = BranchOrderResponse.model_validate(branch_order) if branch_order else None
    else:
        rendered["order"] = BranchOrderResponse.model_validate(result["order"])
        factory_order = result.get("factoryOrder")
        rendered["factoryOrder"] = OrderResponse.model_validate(factory_order) if factory_order else None
        driver = result.get("driver")
        rendered["driver"] = DriverResponse.model_validate(driver) if driver else None
    return rendered


@router.post("/process")
@limiter.limit("30/minute")
def process_delivery(request: Request, data: DeliveryRequest, db: DbSession, current_user: RequireManager):
    result = DeliveryService(db).process(data.delivery_type, data.order_id)
    db.commit()
    return envelope(f"{data.delivery_type.capitalize()} delivery processed successfully", **_render(result))


@router.post("/factory/{order_id}")
@limiter.limit("30/minute")
def process_factory_delivery(request: Request, order_id: int, db: DbSession, current_user: RequireFactoryStaff):
    result = DeliveryService(db).process_factory_delivery(order_id)
    db.commit()
    return envelope("Factory delivery processed successfully", **_render(result))


@router.post("/branch/{branch_order_id}")
@limiter.limit("30/minute")
def process_branch_delivery(request: Request, branch_order_id: int, db: DbSession, current_user: RequireBranchStaff):
    result = DeliveryService(db).process_branch_delivery(branch_order_id)
    db.commit()
    return envelope("Branch delivery processed successfully", **_render(result))


@router.get("/stats")
@limiter.limit("60/minute")
def delivery_stats(request: Request, db: DbSession, current_user: CurrentUser):
    return envelope(stats=DeliveryService(db).stats())


@router.get("/history")
@limiter.limit("60/minute")
def delivery_history(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    branch_id: Optional[str] = Query(None, alias="branchId"),
    limit: int = Query(50, ge=1, le=500),
):
    orders = DeliveryService(db).history(branch_id, limit)
    return envelope(deliveries=[BranchOrderResponse.model_validate(o) for o in orders], count=len(orders))
