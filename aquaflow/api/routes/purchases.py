"""Customer purchases paid out of branch stock."""

import logging

from fastapi import APIRouter, Request, status

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import CurrentUser, RequireBranchStaff, UserRole
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.schemas.factory_request import PurchaseCreate, PurchaseResponse
from aquaflow.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_purchase(request: Request, data: PurchaseCreate, db: DbSession, current_user: CurrentUser):
    customer_id = current_user.user_id if current_user.role == UserRole.CUSTOMER else None
    purchase = PurchaseService(db).create(data.model_dump(), customer_id=customer_id)
    db.commit()
    db.refresh(purchase)
    return envelope("Purchase recorded successfully", purchase=PurchaseResponse.model_validate(purchase))


@router.get("/branch/{branch_id}")
@limiter.limit("60/minute")
def branch_purchases(request: Request, branch_id: str, db: DbSession, current_user: RequireBranchStaff):
    purchases = PurchaseService(db).for_branch(branch_id)
    return envelope(purchases=[PurchaseResponse.model_validate(p) for p in purchases], count=len(purchases))
