"""Factory main waste bin.

Branch waste that the factory has collected is tipped into one bin at the
factory. Each delivery is logged as a ``FactoryWasteEntry`` tied to the
collection it came from; the bin's level only grows through ``add_waste``
and only drops when it is emptied.
"""

import logging
import math
from datetime import date, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aquaflow.core.config import settings
from aquaflow.core.errors import BusinessRuleError
from aquaflow.db.base import day_start, utcnow
from aquaflow.models.factory_waste import (
    MAIN_BIN_CODE,
    FactoryWasteBin,
    FactoryWasteEntry,
    WasteType,
)
from aquaflow.models.recycling import RecyclingRequest, RequestStatus

logger = logging.getLogger(__name__)

MIGRATION_PROCESSOR = "Historical Migration"


class FactoryWasteService:
    def __init__(self, db: Session):
        self.db = db

    def get_main_bin(self) -> FactoryWasteBin:
        """The factory bin, created empty on first use."""
        factory_bin = self.db.query(FactoryWasteBin).filter(FactoryWasteBin.bin_code == MAIN_BIN_CODE).first()
        if factory_bin is not None:
            return factory_bin
        try:
            with self.db.begin_nested():
                factory_bin = FactoryWasteBin(bin_code=MAIN_BIN_CODE, capacity=settings.factory_bin_capacity)
                self.db.add(factory_bin)
            logger.info(f"Created factory waste bin {MAIN_BIN_CODE} ({factory_bin.capacity}kg)")
            return factory_bin
        except IntegrityError:
            # created by a concurrent request
            return self.db.query(FactoryWasteBin).filter(FactoryWasteBin.bin_code == MAIN_BIN_CODE).one()

    def add_waste(self, data: Dict[str, Any], processed_by: Optional[str] = None) -> FactoryWasteBin:
        """Log a delivery and raise the bin level; refused when it would overflow."""
        weight = float(data["waste_weight"])
        if weight <= 0:
            raise BusinessRuleError("Waste weight must be greater than 0")
        factory_bin = self.get_main_bin()
        self.db.flush()
        result = self.db.execute(
            update(FactoryWasteBin)
            .where(
                FactoryWasteBin.id == factory_bin.id,
                FactoryWasteBin.current_level + weight <= FactoryWasteBin.capacity,
            )
            .values(
                current_level=FactoryWasteBin.current_level + weight,
                total_waste_collected=FactoryWasteBin.total_waste_collected + weight,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(factory_bin)
        if result.rowcount == 0:
            raise BusinessRuleError(
                f"Insufficient capacity. Available: {factory_bin.available_capacity:g} kg, "
                f"Required: {weight:g} kg",
                available=factory_bin.available_capacity,
                required=weight,
            )

        factory_bin.refresh_fill()
        factory_bin.entries.append(FactoryWasteEntry(
            source_branch=data["source_branch"],
            source_branch_id=data["source_branch_id"],
            waste_weight=weight,
            waste_type=data.get("waste_type") or WasteType.MIXED,
            collection_request_id=str(data["collection_request_id"]),
            processed_by=processed_by,
        ))
        self.db.flush()
        logger.info(
            f"Factory bin +{weight}kg from {data['source_branch']} -> "
            f"{factory_bin.current_level}kg ({factory_bin.fill_percentage}%)"
        )
        return factory_bin

    def empty(self, processed_by: Optional[str] = None) -> FactoryWasteBin:
        factory_bin = self.get_main_bin()
        factory_bin.current_level = 0.0
        factory_bin.last_emptied = utcnow()
        factory_bin.refresh_fill()
        self.db.flush()
        logger.info(f"Factory bin emptied by {processed_by or 'System'}")
        return factory_bin

    def statistics(self) -> Dict[str, Any]:
        factory_bin = self.get_main_bin()
        self.db.flush()
        by_type = dict(
            self.db.query(FactoryWasteEntry.waste_type, func.sum(FactoryWasteEntry.waste_weight))
            .filter(FactoryWasteEntry.bin_id == factory_bin.id)
            .group_by(FactoryWasteEntry.waste_type)
            .all()
        )
        by_branch = dict(
            self.db.query(FactoryWasteEntry.source_branch, func.sum(FactoryWasteEntry.waste_weight))
            .filter(FactoryWasteEntry.bin_id == factory_bin.id)
            .group_by(FactoryWasteEntry.source_branch)
            .all()
        )
        collections = (
            self.db.query(func.count(FactoryWasteEntry.id))
            .filter(FactoryWasteEntry.bin_id == factory_bin.id)
            .scalar()
        )
        return {
            "totalWaste": round(float(sum(by_type.values())), 2),
            "currentLevel": factory_bin.current_level,
            "capacity": factory_bin.capacity,
            "fillPercentage": factory_bin.fill_percentage,
            "status": factory_bin.status.value,
            "wasteByType": {waste_type.value: round(float(w), 2) for waste_type, w in by_type.items()},
            "wasteByBranch": {branch: round(float(w), 2) for branch, w in by_branch.items()},
            "totalCollections": collections or 0,
            "lastEmptied": factory_bin.last_emptied,
        }

    def history(
        self,
        page: int = 1,
        limit: int = 50,
        branch_id: Optional[str] = None,
        waste_type: Optional[WasteType] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Deliveries newest first, one page at a time; ``end_date`` is inclusive."""
        factory_bin = self.get_main_bin()
        self.db.flush()
        query = self.db.query(FactoryWasteEntry).filter(FactoryWasteEntry.bin_id == factory_bin.id)
        if branch_id:
            query = query.filter(FactoryWasteEntry.source_branch_id == branch_id)
        if waste_type:
            query = query.filter(FactoryWasteEntry.waste_type == waste_type)
        if start_date:
            query = query.filter(FactoryWasteEntry.date >= day_start(start_date))
        if end_date:
            query = query.filter(FactoryWasteEntry.date < day_start(end_date + timedelta(days=1)))

        total = query.count()
        entries = (
            query.order_by(FactoryWasteEntry.date.desc(), FactoryWasteEntry.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "history": entries,
            "totalCount": total,
            "currentPage": page,
            "totalPages": math.ceil(total / limit),
        }

    def migrate_historical(self) -> Dict[str, Any]:
        """Tip every approved or completed recycling request into the bin.

        Requests already logged (by request code) are skipped, so running the
        migration again adds nothing. A request that no longer fits is logged
        and left out.
        """
        factory_bin = self.get_main_bin()
        self.db.flush()
        logged = {
            ref for (ref,) in self.db.query(FactoryWasteEntry.collection_request_id)
            .filter(FactoryWasteEntry.bin_id == factory_bin.id)
        }
        requests = (
            self.db.query(RecyclingRequest)
            .filter(
                RecyclingRequest.status.in_((RequestStatus.APPROVED, RequestStatus.COMPLETED)),
                RecyclingRequest.waste_weight > 0,
            )
            .order_by(RecyclingRequest.request_date, RecyclingRequest.id)
            .all()
        )

        migrated, total_weight = 0, 0.0
        for request in requests:
            if request.request_code in logged:
                continue
            try:
                with self.db.begin_nested():
                    self.add_waste({
                        "source_branch": request.branch_name,
                        "source_branch_id": request.branch_id,
                        "waste_weight": request.waste_weight,
                        "waste_type": WasteType.MIXED,
                        "collection_request_id": request.request_code,
                    }, processed_by=MIGRATION_PROCESSOR)
            except BusinessRuleError as e:
                logger.warning(f"Skipped {request.request_code} during migration: {e.message}")
                continue
            migrated += 1
            total_weight += request.waste_weight

        logger.info(f"Migrated {migrated} recycling requests ({total_weight}kg) into the factory bin")
        return {"bin": factory_bin, "migratedCount": migrated, "totalWeight": round(total_weight, 2)}
