"""Branch replenishment requests to the factory."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from aquaflow.core.errors import BusinessRuleError, NotFoundError
from aquaflow.db.base import utcnow
from aquaflow.models.factory_request import FactoryRequest, FactoryRequestLine, FactoryRequestStatus
from aquaflow.services.identifiers import daily_sequence
from aquaflow.services.inventory_service import InventoryLedger
from aquaflow.services.transitions import compare_and_set_status

logger = logging.getLogger(__name__)


class FactoryRequestService:
    def __init__(self, db: Session):
        self.db = db
        self.ledger = InventoryLedger(db)

    def get(self, request_id: int) -> FactoryRequest:
        request = self.db.get(FactoryRequest, request_id)
        if request is None:
            raise NotFoundError("Factory request not found")
        return request

    def list(
        self, status: Optional[FactoryRequestStatus] = None, branch_id: Optional[str] = None
    ) -> List[FactoryRequest]:
        query = self.db.query(FactoryRequest)
        if status:
            query = query.filter(FactoryRequest.status == status)
        if branch_id:
            query = query.filter(FactoryRequest.branch_id == branch_id)
        return query.order_by(FactoryRequest.created_at.desc(), FactoryRequest.id.desc()).all()

    def create(self, data: Dict[str, Any], requested_by: Optional[str] = None) -> FactoryRequest:
        lines = data.get("items") or []
        if not lines:
            raise BusinessRuleError("Request must contain at least one item")
        request = FactoryRequest(
            request_code=daily_sequence(self.db, FactoryRequest.request_code, "FR"),
            branch_id=data["branch_id"],
            branch_name=data["branch_name"],
            requested_by=requested_by,
            notes=data.get("notes"),
            lines=[FactoryRequestLine(**line) for line in lines],
        )
        self.db.add(request)
        self.db.flush()
        logger.info(f"Factory request {request.request_code} from {request.branch_name}")
        return request

    def _transfer(self, request: FactoryRequest) -> List[Dict[str, Any]]:
        """Move every line factory -> branch; validated up front so it is all or nothing."""
        problems = self.ledger.check_factory_availability(
            {"item_name": line.item_name, "quantity": line.requested_quantity} for line in request.lines
        )
        if problems:
            raise BusinessRuleError(
                "Insufficient factory inventory for this request",
                errors=[p["message"] for p in problems],
                insufficientItems=problems,
            )
        return [
            self.ledger.transfer_to_branch(
                request.branch_id, line.item_name, line.requested_quantity, request.branch_name
            )
            for line in request.lines
        ]

    def approve(self, request_id: int, processed_by: Optional[str] = None) -> Dict[str, Any]:
        """Approve a pending request and ship its stock straight away."""
        request = self.get(request_id)
        if request.status != FactoryRequestStatus.PENDING:
            raise BusinessRuleError(
                f"Request is not pending. Current status: {request.status.value}",
                currentStatus=request.status.value,
            )
        transfers = self._transfer(request)
        compare_and_set_status(
            self.db, FactoryRequest, request.id, FactoryRequestStatus.PENDING, FactoryRequestStatus.FULFILLED,
            label="Factory request", processed_by=processed_by, processed_at=utcnow(),
        )
        logger.info(f"Factory request {request.request_code} approved and fulfilled")
        return {"request": request, "transfers": transfers}

    def fulfill(self, request_id: int, processed_by: Optional[str] = None) -> Dict[str, Any]:
        request = self.get(request_id)
        if request.status != FactoryRequestStatus.APPROVED:
            raise BusinessRuleError("Request must be approved before fulfillment")
        transfers = self._transfer(request)
        compare_and_set_status(
            self.db, FactoryRequest, request.id, FactoryRequestStatus.APPROVED, FactoryRequestStatus.FULFILLED,
            label="Factory request", processed_by=processed_by, processed_at=utcnow(),
        )
        return {"request": request, "transfers": transfers}

    def reject(self, request_id: int, reason: Optional[str] = None, processed_by: Optional[str] = None) -> FactoryRequest:
        request = self.get(request_id)
        compare_and_set_status(
            self.db, FactoryRequest, request.id, FactoryRequestStatus.PENDING, FactoryRequestStatus.REJECTED,
            label="Factory request", rejection_reason=reason, processed_by=processed_by, processed_at=utcnow(),
        )
        return request

    def delete(self, request_id: int) -> FactoryRequest:
        request = self.get(request_id)
        self.db.delete(request)
        self.db.flush()
        return request
