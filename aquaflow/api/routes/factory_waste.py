"""Factory main waste bin."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, Request

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import RequireFactoryStaff, RequireManager
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.models.factory_waste import WasteType
from aquaflow.schemas.factory_waste import FactoryBinResponse, WasteDelivery, WasteEntryResponse
from aquaflow.services.factory_waste_service import FactoryWasteService

router = APIRouter()


def _bin(factory_bin):
    return FactoryBinResponse.model_validate(factory_bin)


@router.get("")
@limiter.limit("60/minute")
def get_main_bin(request: Request, db: DbSession, current_user: RequireManager):
    service = FactoryWasteService(db)
    factory_bin = service.get_main_bin()
    statistics = service.statistics()
    db.commit()
    return envelope(bin=_bin(factory_bin), statistics=statistics)


@router.get("/statistics")
@limiter.limit("60/minute")
def bin_statistics(request: Request, db: DbSession, current_user: RequireManager):
    statistics = FactoryWasteService(db).statistics()
    db.commit()
    return envelope(statistics=statistics)


@router.get("/history")
@limiter.limit("60/minute")
def bin_history(
    request: Request,
    db: DbSession,
    current_user: RequireManager,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    branch_id: Optional[str] = Query(None, alias="branchId"),
    waste_type: Optional[WasteType] = Query(None, alias="wasteType"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
):
    result = FactoryWasteService(db).history(page, limit, branch_id, waste_type, start_date, end_date)
    db.commit()
    return envelope(
        history=[WasteEntryResponse.model_validate(e) for e in result["history"]],
        totalCount=result["totalCount"],
        currentPage=result["currentPage"],
        totalPages=result["totalPages"],
    )


@router.post("/add-waste")
@limiter.limit("30/minute")
def add_waste(request: Request, data: WasteDelivery, db: DbSession, current_user: RequireFactoryStaff):
    service = FactoryWasteService(db)
    factory_bin = service.add_waste(
        data.model_dump(exclude={"processed_by"}), processed_by=data.processed_by or current_user.name
    )
    statistics = service.statistics()
    db.commit()
    db.refresh(factory_bin)
    return envelope("Waste added to factory bin successfully", bin=_bin(factory_bin), statistics=statistics)


@router.put("/empty")
@limiter.limit("30/minute")
def empty_bin(request: Request, db: DbSession, current_user: RequireFactoryStaff):
    service = FactoryWasteService(db)
    factory_bin = service.empty(processed_by=current_user.name)
    statistics = service.statistics()
    db.commit()
    db.refresh(factory_bin)
    return envelope("Factory bin emptied successfully", bin=_bin(factory_bin), statistics=statistics)


@router.post("/migrate-historical")
@limiter.limit("30/minute")
def migrate_historical(request: Request, db: DbSession, current_user: RequireFactoryStaff):
    """Load approved and completed recycling requests that predate the factory bin."""
    service = FactoryWasteService(db)
    result = service.migrate_historical()
    statistics = service.statistics()
    db.commit()
    db.refresh(result["bin"])
    return envelope(
        "Historical waste migration completed",
        migratedCount=result["migratedCount"],
        totalWeight=result["totalWeight"],
        bin=_bin(result["bin"]),
        statistics=statistics,
    )
