"""Recycling bins, customer recycling requests and bin collection requests."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireBranchStaff, RequireFactoryStaff, RequireManager, UserRole
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.models.recycling import BinStatus, RequestStatus
from aquaflow.models.user import User
from aquaflow.schemas.base import ReasonBody
from aquaflow.schemas.recycling import (
    ApproveBody,
    BinCreate,
    BinResponse,
    BinUpdate,
    CollectionRequestCreate,
    CollectionRequestResponse,
    FillLevelUpdate,
    RecyclingRequestCreate,
    RecyclingRequestResponse,
)
from aquaflow.services.recycling_service import (
    CollectionRequestService,
    RecyclingBinService,
    RecyclingRequestService,
)

logger = logging.getLogger(__name__)

bins_router = APIRouter()
requests_router = APIRouter()
collection_router = APIRouter()


def _bins(rows):
    return [BinResponse.model_validate(b) for b in rows]


def _requests(rows):
    return [RecyclingRequestResponse.model_validate(r) for r in rows]


def _collections(rows):
    return [CollectionRequestResponse.model_validate(r) for r in rows]


def _bin_or_none(recycling_bin):
    return BinResponse.model_validate(recycling_bin) if recycling_bin is not None else None


# ===== BINS =====


@bins_router.get("")
@limiter.limit("60/minute")
def list_bins(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    branch_id: Optional[str] = Query(None, alias="branchId"),
    status_filter: Optional[BinStatus] = Query(None, alias="status"),
):
    rows = RecyclingBinService(db).list(branch_id, status_filter)
    return envelope(bins=_bins(rows), count=len(rows))


@bins_router.get("/branch/{branch_id}")
@limiter.limit("60/minute")
def branch_bins(request: Request, branch_id: str, db: DbSession, current_user: CurrentUser):
    rows = RecyclingBinService(db).list(branch_id)
    return envelope(bins=_bins(rows), count=len(rows))


@bins_router.get("/critical")
@limiter.limit("60/minute")
def critical_bins(request: Request, db: DbSession, current_user: RequireManager):
    rows = RecyclingBinService(db).critical()
    return envelope(bins=_bins(rows), count=len(rows))


@bins_router.get("/notifications")
@limiter.limit("60/minute")
def factory_notifications(request: Request, db: DbSession, current_user: RequireFactoryStaff):
    """Bins that have alerted the factory and still need collecting."""
    rows = RecyclingBinService(db).factory_notifications()
    return envelope(notifications=_bins(rows), count=len(rows))


@bins_router.get("/stats")
@limiter.limit("60/minute")
def bin_stats(request: Request, db: DbSession, current_user: CurrentUser):
    return envelope(stats=RecyclingBinService(db).stats())


@bins_router.get("/{bin_id}")
@limiter.limit("60/minute")
def get_bin(request: Request, bin_id: int, db: DbSession, current_user: CurrentUser):
    return envelope(bin=BinResponse.model_validate(RecyclingBinService(db).get(bin_id)))


@bins_router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_bin(request: Request, data: BinCreate, db: DbSession, current_user: RequireManager):
    recycling_bin = RecyclingBinService(db).create(data.model_dump())
    db.commit()
    db.refresh(recycling_bin)
    return envelope("Recycling bin created successfully", bin=BinResponse.model_validate(recycling_bin))


@bins_router.put("/{bin_id}")
@limiter.limit("30/minute")
def update_bin(request: Request, bin_id: int, data: BinUpdate, db: DbSession, current_user: RequireManager):
    recycling_bin = RecyclingBinService(db).update(bin_id, data.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(recycling_bin)
    return envelope("Recycling bin updated successfully", bin=BinResponse.model_validate(recycling_bin))


@bins_router.put("/{bin_id}/fill-level")
@limiter.limit("30/minute")
def set_fill_level(request: Request, bin_id: int, data: FillLevelUpdate, db: DbSession, current_user: RequireManager):
    recycling_bin = RecyclingBinService(db).set_fill_level(bin_id, data.current_level)
    db.commit()
    db.refresh(recycling_bin)
    return envelope("Fill level updated successfully", bin=BinResponse.model_validate(recycling_bin))


@bins_router.put("/{bin_id}/empty")
@limiter.limit("30/minute")
def empty_bin(request: Request, bin_id: int, db: DbSession, current_user: RequireManager):
    recycling_bin = RecyclingBinService(db).empty(bin_id)
    db.commit()
    db.refresh(recycling_bin)
    return envelope("Bin emptied successfully", bin=BinResponse.model_validate(recycling_bin))


@bins_router.put("/{bin_id}/notify")
@limiter.limit("30/minute")
def mark_bin_notified(request: Request, bin_id: int, db: DbSession, current_user: RequireManager):
    recycling_bin = RecyclingBinService(db).mark_notified(bin_id)
    db.commit()
    db.refresh(recycling_bin)
    return envelope("Factory notified", bin=BinResponse.model_validate(recycling_bin))


@bins_router.delete("/{bin_id}")
@limiter.limit("30/minute")
def delete_bin(request: Request, bin_id: int, db: DbSession, current_user: RequireManager):
    RecyclingBinService(db).delete(bin_id)
    db.commit()
    return envelope("Recycling bin deleted successfully")


# ===== RECYCLING REQUESTS =====


@requests_router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_recycling_request(
    request: Request, data: RecyclingRequestCreate, db: DbSession, current_user: CurrentUser
):
    """Log a drop-off. Customers are linked to the request so approval credits their points."""
    customer = None
    if current_user.role == UserRole.CUSTOMER:
        customer = db.get(User, current_user.user_id)
    recycling_request = RecyclingRequestService(db).create(data.model_dump(), customer=customer)
    db.commit()
    db.refresh(recycling_request)
    return envelope(
        "Recycling request submitted successfully",
        request=RecyclingRequestResponse.model_validate(recycling_request),
    )


@requests_router.get("")
@limiter.limit("60/minute")
def list_recycling_requests(
    request: Request,
    db: DbSession,
    current_user: RequireManager,
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    rows = RecyclingRequestService(db).list(status_filter, branch_id)
    return envelope(requests=_requests(rows), count=len(rows))


@requests_router.get("/customer/{customer_id}")
@limiter.limit("60/minute")
def customer_recycling_requests(request: Request, customer_id: int, db: DbSession, current_user: CurrentUser):
    if current_user.role == UserRole.CUSTOMER and current_user.user_id != customer_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    rows = RecyclingRequestService(db).list(customer_id=customer_id)
    return envelope(requests=_requests(rows), count=len(rows))


@requests_router.get("/branch/{branch_id}")
@limiter.limit("60/minute")
def branch_recycling_requests(
    request: Request,
    branch_id: str,
    db: DbSession,
    current_user: RequireManager,
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
):
    rows = RecyclingRequestService(db).list(status_filter, branch_id)
    return envelope(requests=_requests(rows), count=len(rows))


@requests_router.get("/stats")
@limiter.limit("60/minute")
def recycling_request_stats(
    request: Request,
    db: DbSession,
    current_user: RequireManager,
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    return envelope(stats=RecyclingRequestService(db).stats(branch_id))


@requests_router.get("/{request_id}")
@limiter.limit("60/minute")
def get_recycling_request(request: Request, request_id: int, db: DbSession, current_user: CurrentUser):
    recycling_request = RecyclingRequestService(db).get(request_id)
    if current_user.role == UserRole.CUSTOMER and recycling_request.customer_id != current_user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return envelope(request=RecyclingRequestResponse.model_validate(recycling_request))


@requests_router.put("/{request_id}/approve")
@limiter.limit("30/minute")
def approve_recycling_request(
    request: Request,
    request_id: int,
    db: DbSession,
    current_user: RequireBranchStaff,
    data: Optional[ApproveBody] = None,
):
    """Approve a drop-off: the branch bin fills and the customer earns points."""
    approved_by = (data.approved_by if data else None) or current_user.name
    result = RecyclingRequestService(db).approve(request_id, approved_by)
    db.commit()
    db.refresh(result["request"])
    return envelope(
        "Recycling request approved successfully",
        request=RecyclingRequestResponse.model_validate(result["request"]),
        bin=_bin_or_none(result["bin"]),
        customerPoints=result["customerPoints"],
    )


@requests_router.put("/{request_id}/reject")
@limiter.limit("30/minute")
def reject_recycling_request(
    request: Request,
    request_id: int,
    db: DbSession,
    current_user: RequireBranchStaff,
    data: Optional[ReasonBody] = None,
):
    result = RecyclingRequestService(db).reject(request_id, data.reason if data else None)
    db.commit()
    db.refresh(result["request"])
    return envelope(
        "Recycling request rejected",
        request=RecyclingRequestResponse.model_validate(result["request"]),
        bin=_bin_or_none(result["bin"]),
    )


@requests_router.put("/{request_id}/complete")
@limiter.limit("30/minute")
def complete_recycling_request(request: Request, request_id: int, db: DbSession, current_user: RequireBranchStaff):
    recycling_request = RecyclingRequestService(db).complete(request_id)
    db.commit()
    db.refresh(recycling_request)
    return envelope(
        "Recycling request completed",
        request=RecyclingRequestResponse.model_validate(recycling_request),
    )


@requests_router.delete("/{request_id}")
@limiter.limit("30/minute")
def delete_recycling_request(request: Request, request_id: int, db: DbSession, current_user: RequireManager):
    RecyclingRequestService(db).delete(request_id)
    db.commit()
    return envelope("Recycling request deleted successfully")


# ===== COLLECTION REQUESTS =====


@collection_router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_collection_request(
    request: Request, data: CollectionRequestCreate, db: DbSession, current_user: RequireBranchStaff
):
    collection = CollectionRequestService(db).create(data.model_dump(), requested_by=current_user.name)
    db.commit()
    db.refresh(collection)
    return envelope(
        "Collection request submitted successfully",
        request=CollectionRequestResponse.model_validate(collection),
    )


@collection_router.get("")
@limiter.limit("60/minute")
def list_collection_requests(
    request: Request,
    db: DbSession,
    current_user: RequireManager,
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    branch_id: Optional[str] = Query(None, alias="branchId"),
):
    rows = CollectionRequestService(db).list(status_filter, branch_id)
    return envelope(requests=_collections(rows), count=len(rows))


@collection_router.get("/branch/{branch_id}")
@limiter.limit("60/minute")
def branch_collection_requests(request: Request, branch_id: str, db: DbSession, current_user: RequireManager):
    rows = CollectionRequestService(db).list(branch_id=branch_id)
    return envelope(requests=_collections(rows), count=len(rows))


@collection_router.get("/stats")
@limiter.limit("60/minute")
def collection_request_stats(request: Request, db: DbSession, current_user: RequireManager):
    return envelope(stats=CollectionRequestService(db).stats())


@collection_router.get("/{request_id}")
@limiter.limit("60/minute")
def get_collection_request(request: Request, request_id: int, db: DbSession, current_user: RequireManager):
    return envelope(request=CollectionRequestResponse.model_validate(CollectionRequestService(db).get(request_id)))


@collection_router.put("/{request_id}/approve")
@limiter.limit("30/minute")
def approve_collection_request(request: Request, request_id: int, db: DbSession, current_user: RequireFactoryStaff):
    """Approve a collection: the bin is emptied immediately."""
    result = CollectionRequestService(db).approve(request_id)
    db.commit()
    db.refresh(result["request"])
    return envelope(
        "Collection request approved, bin emptied",
        request=CollectionRequestResponse.model_validate(result["request"]),
        bin=_bin_or_none(result["bin"]),
    )


@collection_router.put("/{request_id}/reject")
@limiter.limit("30/minute")
def reject_collection_request(
    request: Request,
    request_id: int,
    db: DbSession,
    current_user: RequireFactoryStaff,
    data: Optional[ReasonBody] = None,
):
    collection = CollectionRequestService(db).reject(request_id, data.reason if data else None)
    db.commit()
    db.refresh(collection)
    return envelope("Collection request rejected", request=CollectionRequestResponse.model_validate(collection))


@collection_router.put("/{request_id}/complete")
@limiter.limit("30/minute")
def complete_collection_request(request: Request, request_id: int, db: DbSession, current_user: RequireFactoryStaff):
    collection = CollectionRequestService(db).complete(request_id)
    db.commit()
    db.refresh(collection)
    return envelope("Collection request completed", request=CollectionRequestResponse.model_validate(collection))
