"""Emergency water requests from fire brigades, driver bonuses and dispatch helpers."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireAdmin, RequireManager, TokenData, UserRole, require_roles
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.models.emergency import EmergencyStatus
from aquaflow.schemas.emergency import (
    DriverBonusResponse,
    EmergencyCreate,
    EmergencyResponse,
    EmergencyStatusUpdate,
    GenerateLocationRequest,
    NearestBranchQuery,
    RouteRequest,
)
from aquaflow.services.emergency_service import EmergencyService, parse_emergency_status
from aquaflow.services.geo_service import GeoService

logger = logging.getLogger(__name__)

router = APIRouter()

RequireDispatch = Annotated[
    TokenData,
    Depends(require_roles(UserRole.ADMIN, UserRole.FACTORY_MANAGER, UserRole.BRANCH_MANAGER, UserRole.DRIVER)),
]


def _service(request: Request, db) -> EmergencyService:
    return EmergencyService(db, getattr(request.app.state, "locations", None))


def _geo(request: Request, db) -> GeoService:
    return GeoService(db, request.app.state.locations)


def _requests(rows):
    return [EmergencyResponse.model_validate(r) for r in rows]


def _check_driver_access(current_user: TokenData, driver_id: int) -> None:
    if current_user.role == UserRole.DRIVER and current_user.user_id != driver_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_emergency_request(request: Request, data: EmergencyCreate, db: DbSession):
    """Open an emergency request. No login required so brigades can call in directly."""
    emergency = _service(request, db).create(data.model_dump())
    db.commit()
    db.refresh(emergency)
    return envelope(
        "Emergency request submitted successfully",
        request=EmergencyResponse.model_validate(emergency),
    )


@router.get("")
@limiter.limit("60/minute")
def list_emergency_requests(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    status_filter: Optional[str] = Query(None, alias="status"),
):
    parsed = parse_emergency_status(status_filter) if status_filter else None
    rows = _service(request, db).list(status=parsed)
    return envelope(requests=_requests(rows), count=len(rows))


@router.get("/status/{status_value}")
@limiter.limit("60/minute")
def emergency_requests_by_status(request: Request, status_value: str, db: DbSession, current_user: CurrentUser):
    rows = _service(request, db).list(status=parse_emergency_status(status_value))
    return envelope(requests=_requests(rows), count=len(rows))


@router.get("/brigade/{brigade_id}")
@limiter.limit("60/minute")
def emergency_requests_by_brigade(request: Request, brigade_id: str, db: DbSession, current_user: CurrentUser):
    rows = _service(request, db).list(brigade_id=brigade_id)
    return envelope(requests=_requests(rows), count=len(rows))


@router.get("/branch/{branch_id}")
@limiter.limit("60/minute")
def emergency_requests_by_branch(request: Request, branch_id: str, db: DbSession, current_user: RequireDispatch):
    rows = _service(request, db).list(branch_id=branch_id)
    return envelope(requests=_requests(rows), count=len(rows))


@router.get("/driver/{driver_id}")
@limiter.limit("60/minute")
def emergency_requests_by_driver(request: Request, driver_id: int, db: DbSession, current_user: RequireDispatch):
    _check_driver_access(current_user, driver_id)
    rows = _service(request, db).list(driver_id=driver_id)
    return envelope(requests=_requests(rows), count=len(rows))


@router.get("/driver/{driver_id}/completed")
@limiter.limit("60/minute")
def completed_by_driver(request: Request, driver_id: int, db: DbSession, current_user: RequireDispatch):
    _check_driver_access(current_user, driver_id)
    rows = _service(request, db).list(status=EmergencyStatus.COMPLETED, driver_id=driver_id)
    return envelope(requests=_requests(rows), count=len(rows))


@router.get("/driver/{driver_id}/bonuses")
@limiter.limit("60/minute")
def driver_bonus_history(
    request: Request,
    driver_id: int,
    db: DbSession,
    current_user: RequireDispatch,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000),
):
    _check_driver_access(current_user, driver_id)
    history = _service(request, db).bonus_history(driver_id, month, year)
    return envelope(
        bonuses=[DriverBonusResponse.model_validate(b) for b in history["bonuses"]],
        summary=history["summary"],
    )


@router.get("/driver/{driver_id}/paysheet")
@limiter.limit("60/minute")
def driver_paysheet(
    request: Request,
    driver_id: int,
    db: DbSession,
    current_user: RequireDispatch,
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000),
):
    """Base salary plus the month's emergency bonuses."""
    _check_driver_access(current_user, driver_id)
    paysheet = _service(request, db).paysheet(driver_id, month, year)
    paysheet["bonuses"]["details"] = [
        DriverBonusResponse.model_validate(b) for b in paysheet["bonuses"]["details"]
    ]
    return envelope(paysheet=paysheet)


@router.post("/find-nearest-branch")
@limiter.limit("60/minute")
def find_nearest_branch(request: Request, data: NearestBranchQuery, db: DbSession, current_user: CurrentUser):
    branches = _geo(request, db).find_nearest_branches(data.lat, data.lng, data.max_distance)
    return envelope(branches=branches, count=len(branches))


@router.post("/calculate-route")
@limiter.limit("60/minute")
def calculate_route(request: Request, data: RouteRequest, db: DbSession, current_user: CurrentUser):
    route = _geo(request, db).calculate_route(data.branch_id, data.emergency_coords.lat, data.emergency_coords.lng)
    return envelope(**route)


@router.post("/generate-location")
@limiter.limit("30/minute")
def generate_location(request: Request, data: GenerateLocationRequest, db: DbSession, current_user: RequireManager):
    location = _geo(request, db).generate_location(data.branch_id, data.max_distance_km)
    return envelope(location=location)


@router.get("/{request_id}")
@limiter.limit("60/minute")
def get_emergency_request(request: Request, request_id: int, db: DbSession, current_user: CurrentUser):
    return envelope(request=EmergencyResponse.model_validate(_service(request, db).get(request_id)))


@router.put("/{request_id}/status")
@limiter.limit("30/minute")
def update_emergency_status(
    request: Request, request_id: int, data: EmergencyStatusUpdate, db: DbSession, current_user: RequireDispatch
):
    """Move a request along; completing an assigned request awards the driver's bonus."""
    result = _service(request, db).update_status(request_id, data.model_dump(), current_user)
    db.commit()
    db.refresh(result["request"])
    bonus = result["bonus"]
    return envelope(
        "Emergency request status updated successfully",
        request=EmergencyResponse.model_validate(result["request"]),
        bonus=DriverBonusResponse.model_validate(bonus) if bonus is not None else None,
    )


@router.post("/{request_id}/bonus", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_bonus(request: Request, request_id: int, db: DbSession, current_user: RequireManager):
    bonus = _service(request, db).create_bonus(request_id)
    db.commit()
    db.refresh(bonus)
    return envelope("Driver bonus created successfully", bonus=DriverBonusResponse.model_validate(bonus))


@router.delete("/{request_id}")
@limiter.limit("30/minute")
def delete_emergency_request(request: Request, request_id: int, db: DbSession, current_user: RequireAdmin):
    _service(request, db).delete(request_id)
    db.commit()
    return envelope("Emergency request deleted successfully")
