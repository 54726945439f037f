"""Branch stock requests to the factory."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireBranchStaff, RequireFactoryStaff
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.models.factory_request import FactoryRequestStatus
from aquaflow.schemas.base import ReasonBody
from aquaflow.schemas.factory_request import FactoryRequestCreate, FactoryRequestResponse
from aquaflow.services.factory_request_service import FactoryRequestService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
@limiter.limit("60/minute")
def list_factory_requests(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    status_filter: Optional[FactoryRequestStatus] = Query(None, alias="status"),
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    rows = FactoryRequestService(db).list(status_filter, branch_id)
    return envelope(requests=[FactoryRequestResponse.model_validate(r) for r in rows], count=len(rows))


@router.get("/{request_id}")
@limiter.limit("60/minute")
def get_factory_request(request: Request, request_id: int, db: DbSession, current_user: CurrentUser):
    return envelope(request=FactoryRequestResponse.model_validate(FactoryRequestService(db).get(request_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_factory_request(
    request: Request, data: FactoryRequestCreate, db: DbSession, current_user: RequireBranchStaff
):
    factory_request = FactoryRequestService(db).create(data.model_dump(), requested_by=current_user.name)
    db.commit()
    db.refresh(factory_request)
    return envelope(
        "Factory request created successfully",
        request=FactoryRequestResponse.model_validate(factory_request),
    )


@router.put("/{request_id}/approve")
@limiter.limit("30/minute")
def approve_factory_request(request: Request, request_id: int, db: DbSession, current_user: RequireFactoryStaff):
    """Approve and ship: every line moves from factory to branch stock."""
    result = FactoryRequestService(db).approve(request_id, processed_by=current_user.name)
    db.commit()
    db.refresh(result["request"])
    return envelope(
        "Factory request approved and inventory transferred",
        request=FactoryRequestResponse.model_validate(result["request"]),
        transfers=result["transfers"],
    )


@router.put("/{request_id}/fulfill")
@limiter.limit("30/minute")
def fulfill_factory_request(request: Request, request_id: int, db: DbSession, current_user: RequireFactoryStaff):
    result = FactoryRequestService(db).fulfill(request_id, processed_by=current_user.name)
    db.commit()
    db.refresh(result["request"])
    return envelope(
        "Factory request fulfilled",
        request=FactoryRequestResponse.model_validate(result["request"]),
        transfers=result["transfers"],
    )


@router.put("/{request_id}/reject")
@limiter.limit("30/minute")
def reject_factory_request(
    request: Request,
    request_id: int,
    db: DbSession,
    current_user: RequireFactoryStaff,
    data: Optional[ReasonBody] = None,
):
    factory_request = FactoryRequestService(db).reject(
        request_id, data.reason if data else None, processed_by=current_user.name
    )
    db.commit()
    db.refresh(factory_request)
    return envelope("Factory request rejected", request=FactoryRequestResponse.model_validate(factory_request))


@router.delete("/{request_id}")
@limiter.limit("30/minute")
def delete_factory_request(request: Request, request_id: int, db: DbSession, current_user: RequireFactoryStaff):
    FactoryRequestService(db).delete(request_id)
    db.commit()
    return envelope("Factory request deleted successfully")
