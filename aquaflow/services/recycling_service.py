"""Recycling bins, customer recycling requests and bin collection requests.

Bin fill percentage and status are derived by the model on every write; the
services only set ``current_level`` through ``RecyclingBin.set_level``.
Request state changes are conditional updates, so approving the same request
twice moves the bin once.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from aquaflow.core.config import settings
from aquaflow.core.errors import BusinessRuleError, NotFoundError
from aquaflow.db.base import utcnow
from aquaflow.models.recycling import (
    BinStatus,
    CollectionRequest,
    CollectionRequestType,
    RecyclingBin,
    RecyclingRequest,
    RequestStatus,
)
from aquaflow.models.user import User
from aquaflow.services.identifiers import daily_sequence, random_code
from aquaflow.services.transitions import compare_and_set_status

logger = logging.getLogger(__name__)

MIN_WASTE_WEIGHT = 0.1
MAX_WASTE_WEIGHT = 100.0


def points_for(weight: float) -> int:
    """One point per whole kilogram."""
    return int(math.floor(weight))


class RecyclingBinService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, bin_id: int) -> RecyclingBin:
        recycling_bin = self.db.get(RecyclingBin, bin_id)
        if recycling_bin is None:
            raise NotFoundError("Recycling bin not found")
        return recycling_bin

    def for_branch(self, branch_id: str) -> Optional[RecyclingBin]:
        return (
            self.db.query(RecyclingBin)
            .filter(RecyclingBin.branch_id == branch_id)
            .order_by(RecyclingBin.id)
            .first()
        )

    def list(self, branch_id: Optional[str] = None, status: Optional[BinStatus] = None) -> List[RecyclingBin]:
        query = self.db.query(RecyclingBin)
        if branch_id:
            query = query.filter(RecyclingBin.branch_id == branch_id)
        if status:
            query = query.filter(RecyclingBin.status == status)
        return query.order_by(RecyclingBin.branch_id, RecyclingBin.id).all()

    def create(self, data: Dict[str, Any]) -> RecyclingBin:
        recycling_bin = RecyclingBin(
            bin_code=daily_sequence(self.db, RecyclingBin.bin_code, f"BIN-{data['branch_id']}"),
            **data,
        )
        recycling_bin.set_level(data.get("current_level") or 0.0)
        self.db.add(recycling_bin)
        self.db.flush()
        logger.info(f"Created bin {recycling_bin.bin_code} for {recycling_bin.branch_name}")
        return recycling_bin

    def update(self, bin_id: int, data: Dict[str, Any]) -> RecyclingBin:
        recycling_bin = self.get(bin_id)
        level = data.pop("current_level", None)
        for field, value in data.items():
            setattr(recycling_bin, field, value)
        recycling_bin.set_level(recycling_bin.current_level if level is None else level)
        self.db.flush()
        return recycling_bin

    def set_fill_level(self, bin_id: int, level: float) -> RecyclingBin:
        """Set the level directly; dropping below the threshold re-arms the notification."""
        recycling_bin = self.get(bin_id)
        recycling_bin.set_level(level)
        if recycling_bin.fill_percentage < settings.bin_notification_threshold:
            recycling_bin.is_notified = False
        self.db.flush()
        logger.info(f"Bin {recycling_bin.bin_code} level set to {recycling_bin.current_level}")
        return recycling_bin

    def add_waste(self, recycling_bin: RecyclingBin, weight: float) -> RecyclingBin:
        recycling_bin.set_level(recycling_bin.current_level + weight)
        if recycling_bin.fill_percentage >= settings.bin_notification_threshold and not recycling_bin.is_notified:
            recycling_bin.is_notified = True
            logger.warning(
                f"Bin {recycling_bin.bin_code} at {recycling_bin.fill_percentage}%, factory notified"
            )
        return recycling_bin

    def remove_waste(self, recycling_bin: RecyclingBin, weight: float) -> RecyclingBin:
        recycling_bin.set_level(recycling_bin.current_level - weight)
        return recycling_bin

    def empty(self, bin_id: int) -> RecyclingBin:
        recycling_bin = self.get(bin_id)
        self.reset(recycling_bin)
        self.db.flush()
        logger.info(f"Bin {recycling_bin.bin_code} emptied")
        return recycling_bin

    @staticmethod
    def reset(recycling_bin: RecyclingBin) -> None:
        recycling_bin.set_level(0.0)
        recycling_bin.is_notified = False
        recycling_bin.last_emptied = utcnow()

    def critical(self) -> List[RecyclingBin]:
        return (
            self.db.query(RecyclingBin)
            .filter(RecyclingBin.fill_percentage >= settings.bin_notification_threshold)
            .order_by(RecyclingBin.fill_percentage.desc())
            .all()
        )

    def factory_notifications(self) -> List[RecyclingBin]:
        """Bins flagged for the factory that are still above the threshold."""
        return (
            self.db.query(RecyclingBin)
            .filter(
                RecyclingBin.is_notified.is_(True),
                RecyclingBin.fill_percentage >= settings.bin_notification_threshold,
            )
            .order_by(RecyclingBin.fill_percentage.desc())
            .all()
        )

    def mark_notified(self, bin_id: int) -> RecyclingBin:
        recycling_bin = self.get(bin_id)
        recycling_bin.is_notified = True
        self.db.flush()
        return recycling_bin

    def delete(self, bin_id: int) -> RecyclingBin:
        recycling_bin = self.get(bin_id)
        self.db.delete(recycling_bin)
        self.db.flush()
        return recycling_bin

    def stats(self) -> Dict[str, Any]:
        by_status = dict(
            self.db.query(RecyclingBin.status, func.count(RecyclingBin.id))
            .group_by(RecyclingBin.status)
            .all()
        )
        total_level, total_capacity = self.db.query(
            func.coalesce(func.sum(RecyclingBin.current_level), 0),
            func.coalesce(func.sum(RecyclingBin.capacity), 0),
        ).one()
        return {
            "totalBins": sum(by_status.values()),
            "byStatus": {status.value: by_status.get(status, 0) for status in BinStatus},
            "criticalBins": by_status.get(BinStatus.CRITICAL, 0),
            "totalWaste": float(total_level or 0),
            "totalCapacity": float(total_capacity or 0),
            "averageFill": round(float(total_level) / float(total_capacity) * 100, 2) if total_capacity else 0.0,
        }


class RecyclingRequestService:
    """Customer drop-offs: approval fills the branch bin and awards points."""

    def __init__(self, db: Session):
        self.db = db
        self.bins = RecyclingBinService(db)

    def get(self, request_id: int) -> RecyclingRequest:
        request = self.db.get(RecyclingRequest, request_id)
        if request is None:
            raise NotFoundError("Recycling request not found")
        return request

    def list(
        self,
        status: Optional[RequestStatus] = None,
        branch_id: Optional[str] = None,
        customer_id: Optional[int] = None,
    ) -> List[RecyclingRequest]:
        query = self.db.query(RecyclingRequest)
        if status:
            query = query.filter(RecyclingRequest.status == status)
        if branch_id:
            query = query.filter(RecyclingRequest.branch_id == branch_id)
        if customer_id is not None:
            query = query.filter(RecyclingRequest.customer_id == customer_id)
        return query.order_by(RecyclingRequest.request_date.desc(), RecyclingRequest.id.desc()).all()

    def create(self, data: Dict[str, Any], customer: Optional[User] = None) -> RecyclingRequest:
        weight = float(data["waste_weight"])
        if not MIN_WASTE_WEIGHT <= weight <= MAX_WASTE_WEIGHT:
            raise BusinessRuleError(
                f"Waste weight must be between {MIN_WASTE_WEIGHT} and {MAX_WASTE_WEIGHT} kg"
            )
        request = RecyclingRequest(
            request_code=random_code("REC", digits=6),
            customer_id=customer.id if customer else data.get("customer_id"),
            customer_name=data.get("customer_name") or (customer.name if customer else "Walk-in Customer"),
            customer_email=data.get("customer_email") or (customer.email if customer else None),
            customer_phone=data.get("customer_phone") or (customer.phone if customer else None),
            branch_id=data["branch_id"],
            branch_name=data["branch_name"],
            waste_weight=weight,
            points_earned=points_for(weight),
            notes=data.get("notes"),
        )
        self.db.add(request)
        self.db.flush()
        logger.info(f"Recycling request {request.request_code}: {weight}kg at {request.branch_name}")
        return request

    def approve(self, request_id: int, approved_by: Optional[str] = None) -> Dict[str, Any]:
        request = self.get(request_id)
        compare_and_set_status(
            self.db, RecyclingRequest, request.id, RequestStatus.PENDING, RequestStatus.APPROVED,
            label="Recycling request", approved_date=utcnow(), approved_by=approved_by,
        )

        recycling_bin = self.bins.for_branch(request.branch_id)
        if recycling_bin is not None:
            self.bins.add_waste(recycling_bin, request.waste_weight)
        else:
            logger.warning(f"No bin at branch {request.branch_id}, {request.request_code} not binned")

        customer = self.db.get(User, request.customer_id) if request.customer_id else None
        if customer is not None:
            customer.recycling_points = (customer.recycling_points or 0) + request.points_earned
        self.db.flush()
        logger.info(f"Recycling request {request.request_code} approved by {approved_by}")
        return {"request": request, "bin": recycling_bin, "customerPoints": customer.recycling_points if customer else None}

    def reject(self, request_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        request = self.get(request_id)
        compare_and_set_status(
            self.db, RecyclingRequest, request.id, RequestStatus.PENDING, RequestStatus.REJECTED,
            label="Recycling request", rejection_reason=reason,
        )
        recycling_bin = None
        if settings.reject_reverses_bin_level:
            recycling_bin = self.bins.for_branch(request.branch_id)
            if recycling_bin is not None:
                self.bins.remove_waste(recycling_bin, request.waste_weight)
        self.db.flush()
        logger.info(f"Recycling request {request.request_code} rejected: {reason}")
        return {"request": request, "bin": recycling_bin}

    def complete(self, request_id: int) -> RecyclingRequest:
        request = self.get(request_id)
        compare_and_set_status(
            self.db, RecyclingRequest, request.id, RequestStatus.APPROVED, RequestStatus.COMPLETED,
            label="Recycling request", completed_date=utcnow(),
        )
        return request

    def delete(self, request_id: int) -> RecyclingRequest:
        request = self.get(request_id)
        self.db.delete(request)
        self.db.flush()
        return request

    def stats(self, branch_id: Optional[str] = None) -> Dict[str, Any]:
        query = self.db.query(RecyclingRequest.status, func.count(RecyclingRequest.id))
        if branch_id:
            query = query.filter(RecyclingRequest.branch_id == branch_id)
        counts = dict(query.group_by(RecyclingRequest.status).all())

        counted = (RequestStatus.APPROVED, RequestStatus.COMPLETED)
        totals = self.db.query(
            func.coalesce(func.sum(RecyclingRequest.waste_weight), 0),
            func.coalesce(func.sum(RecyclingRequest.points_earned), 0),
        ).filter(RecyclingRequest.status.in_(counted))
        if branch_id:
            totals = totals.filter(RecyclingRequest.branch_id == branch_id)
        weight, points = totals.one()
        return {
            "totalRequests": sum(counts.values()),
            "byStatus": {status.value: counts.get(status, 0) for status in RequestStatus},
            "totalWeight": round(float(weight or 0), 2),
            "totalPoints": int(points or 0),
        }


class CollectionRequestService:
    """Branch requests to have a bin emptied by the factory."""

    def __init__(self, db: Session):
        self.db = db
        self.bins = RecyclingBinService(db)

    def get(self, request_id: int) -> CollectionRequest:
        request = self.db.get(CollectionRequest, request_id)
        if request is None:
            raise NotFoundError("Collection request not found")
        return request

    def list(self, status: Optional[RequestStatus] = None, branch_id: Optional[str] = None) -> List[CollectionRequest]:
        query = self.db.query(CollectionRequest)
        if status:
            query = query.filter(CollectionRequest.status == status)
        if branch_id:
            query = query.filter(CollectionRequest.branch_id == branch_id)
        return query.order_by(CollectionRequest.request_date.desc(), CollectionRequest.id.desc()).all()

    def create(self, data: Dict[str, Any], requested_by: Optional[str] = None) -> CollectionRequest:
        recycling_bin = self.bins.get(data["bin_id"])
        pending = (
            self.db.query(CollectionRequest.id)
            .filter(CollectionRequest.bin_id == recycling_bin.id, CollectionRequest.status == RequestStatus.PENDING)
            .first()
        )
        if pending is not None:
            raise BusinessRuleError("There is already a pending collection request for this bin")

        request = CollectionRequest(
            request_code=random_code("COL", digits=6),
            bin_id=recycling_bin.id,
            branch_id=recycling_bin.branch_id,
            branch_name=recycling_bin.branch_name,
            request_type=data.get("request_type") or CollectionRequestType.EMPTY_BIN,
            current_level=recycling_bin.current_level,
            fill_percentage=recycling_bin.fill_percentage,
            requested_by=requested_by,
            notes=data.get("notes"),
        )
        self.db.add(request)
        self.db.flush()
        logger.info(f"Collection request {request.request_code} for bin {recycling_bin.bin_code}")
        return request

    def approve(self, request_id: int) -> Dict[str, Any]:
        request = self.get(request_id)
        compare_and_set_status(
            self.db, CollectionRequest, request.id, RequestStatus.PENDING, RequestStatus.APPROVED,
            label="Collection request", approved_date=utcnow(),
        )
        recycling_bin = self.db.get(RecyclingBin, request.bin_id)
        if recycling_bin is not None:
            self.bins.reset(recycling_bin)
        self.db.flush()
        logger.info(f"Collection request {request.request_code} approved, bin emptied")
        return {"request": request, "bin": recycling_bin}

    def reject(self, request_id: int, reason: Optional[str] = None) -> CollectionRequest:
        request = self.get(request_id)
        compare_and_set_status(
            self.db, CollectionRequest, request.id, RequestStatus.PENDING, RequestStatus.REJECTED,
            label="Collection request", rejection_reason=reason,
        )
        return request

    def complete(self, request_id: int) -> CollectionRequest:
        request = self.get(request_id)
        compare_and_set_status(
            self.db, CollectionRequest, request.id, RequestStatus.APPROVED, RequestStatus.COMPLETED,
            label="Collection request", completed_date=utcnow(),
        )
        return request

    def stats(self) -> Dict[str, Any]:
        counts = dict(
            self.db.query(CollectionRequest.status, func.count(CollectionRequest.id))
            .group_by(CollectionRequest.status)
            .all()
        )
        return {
            "totalRequests": sum(counts.values()),
            "byStatus": {status.value: counts.get(status, 0) for status in RequestStatus},
            "pending": counts.get(RequestStatus.PENDING, 0),
        }
