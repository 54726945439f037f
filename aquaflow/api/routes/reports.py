"""Branch reports."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, Request

from aquaflow.core.rate_limit import limiter
from aquaflow.core.rbac import RequireManager
from aquaflow.core.responses import envelope
from aquaflow.db.session import DbSession
from aquaflow.schemas.driver import DriverResponse
from aquaflow.schemas.inventory import BranchInventoryResponse
from aquaflow.schemas.order import BranchOrderResponse
from aquaflow.schemas.recycling import BinResponse, RecyclingRequestResponse
from aquaflow.services.report_service import ReportService

router = APIRouter()

ROW_SCHEMAS = {
    "orders": BranchOrderResponse,
    "items": BranchInventoryResponse,
    "lowStockItems": BranchInventoryResponse,
    "outOfStockItems": BranchInventoryResponse,
    "bins": BinResponse,
    "requests": RecyclingRequestResponse,
    "drivers": DriverResponse,
    "topPerformers": DriverResponse,
}


def _serialize(data: dict) -> dict:
    return {
        key: [ROW_SCHEMAS[key].model_validate(row) for row in value] if key in ROW_SCHEMAS else value
        for key, value in data.items()
    }


@router.get("/branch/{branch_id}")
@limiter.limit("30/minute")
def branch_report(
    request: Request,
    branch_id: str,
    db: DbSession,
    current_user: RequireManager,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
):
    return envelope(reports=ReportService(db).branch_report(branch_id, start_date, end_date))


@router.get("/branch/{branch_id}/{report_type}")
@limiter.limit("30/minute")
def specific_report(
    request: Request,
    branch_id: str,
    report_type: str,
    db: DbSession,
    current_user: RequireManager,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
):
    report = ReportService(db).specific_report(branch_id, report_type, start_date, end_date)
    return envelope(
        reportType=report["reportType"],
        data=_serialize(report["data"]),
        generatedAt=report["generatedAt"],
        dateRange=report["dateRange"],
    )
