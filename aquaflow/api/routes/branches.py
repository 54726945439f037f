"""Branch directory routes."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireAdmin
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.models.branch import Branch, BranchStatus
from aquaflow.schemas.user import BranchCreate, BranchResponse, BranchUpdate
from aquaflow.services.geo_service import GeoService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_branch(db, branch_id: int) -> Branch:
    branch = db.query(Branch).filter(Branch.id == branch_id).first()
    if not branch:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Branch not found")
    return branch


@router.get("")
@limiter.limit("60/minute")
def list_branches(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    status_filter: Optional[BranchStatus] = Query(None, alias="status"),
):
    query = db.query(Branch)
    if status_filter:
        query = query.filter(Branch.status == status_filter)
    branches = query.order_by(Branch.code).all()
    return envelope(branches=[BranchResponse.model_validate(b) for b in branches], count=len(branches))


@router.get("/active")
@limiter.limit("60/minute")
def active_branches(request: Request, db: DbSession):
    """Active branches, public so the sign-up and drop-off forms can list them."""
    branches = db.query(Branch).filter(Branch.status == BranchStatus.ACTIVE).order_by(Branch.name).all()
    return envelope(branches=[BranchResponse.model_validate(b) for b in branches], count=len(branches))


@router.get("/nearest")
@limiter.limit("60/minute")
def nearest_branches(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    max_distance: float = Query(50000, gt=0, alias="maxDistance"),
):
    branches = GeoService(db, request.app.state.locations).find_nearest_branches(lat, lng, max_distance)
    return envelope(branches=branches, count=len(branches))


@router.get("/{branch_id}")
@limiter.limit("60/minute")
def get_branch(request: Request, branch_id: int, db: DbSession, current_user: CurrentUser):
    return envelope(branch=BranchResponse.model_validate(_get_branch(db, branch_id)))


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_branch(request: Request, data: BranchCreate, db: DbSession, current_user: RequireAdmin):
    duplicate = db.query(Branch).filter((Branch.code == data.code) | (Branch.name == data.name)).first()
    if duplicate:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Branch code or name already exists")
    branch = Branch(**data.model_dump())
    db.add(branch)
    db.commit()
    db.refresh(branch)
    logger.info(f"Branch created: {branch.code} {branch.name}")
    return envelope("Branch created successfully", branch=BranchResponse.model_validate(branch))


@router.put("/{branch_id}")
@limiter.limit("30/minute")
def update_branch(request: Request, branch_id: int, data: BranchUpdate, db: DbSession, current_user: RequireAdmin):
    branch = _get_branch(db, branch_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name") and changes["name"] != branch.name:
        if db.query(Branch).filter(Branch.name == changes["name"], Branch.id != branch.id).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Branch code or name already exists")
    for field, value in changes.items():
        setattr(branch, field, value)
    db.commit()
    db.refresh(branch)
    return envelope("Branch updated successfully", branch=BranchResponse.model_validate(branch))


@router.delete("/{branch_id}")
@limiter.limit("30/minute")
def delete_branch(request: Request, branch_id: int, db: DbSession, current_user: RequireAdmin):
    branch = _get_branch(db, branch_id)
    db.delete(branch)
    db.commit()
    logger.info(f"Branch deleted: {branch.code}")
    return envelope("Branch deleted successfully")
