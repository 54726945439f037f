"""Branch reports: orders, stock, recycling, drivers and customers in one view.

Reports are computed on request from the live tables. Money figures use the
factory catalog price of each item, since branch orders and branch stock do
not carry prices of their own; items missing from the catalog count as 0.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from aquaflow.core.config import settings
from aquaflow.core.errors import BusinessRuleError
from aquaflow.core.rbac import UserRole
from aquaflow.db.base import day_start
from aquaflow.models.driver import Driver, DriverStatus
from aquaflow.models.inventory import BranchInventoryItem, InventoryItem
from aquaflow.models.order import BranchOrder, OrderStatus
from aquaflow.models.recycling import RecyclingBin, RecyclingRequest, RequestStatus
from aquaflow.models.user import User

logger = logging.getLogger(__name__)

REPORT_TYPES = ("orders", "inventory", "recycling", "drivers")
TREND_DAYS = 7


def percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


class DateRange:
    """Reporting window; rows are filtered only when both ends were given."""

    def __init__(self, start_date: Optional[date] = None, end_date: Optional[date] = None):
        today = datetime.now(timezone.utc).date()
        self.filtered = start_date is not None and end_date is not None
        self.start = start_date or today - timedelta(days=settings.report_default_days)
        self.end = end_date or today
        if self.start > self.end:
            raise BusinessRuleError("startDate must not be after endDate")

    def apply(self, query, column):
        if not self.filtered:
            return query
        return query.filter(column >= day_start(self.start), column < day_start(self.end + timedelta(days=1)))

    def as_dict(self) -> Dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    def _prices(self) -> Dict[str, float]:
        return {name: float(price or 0) for name, price in self.db.query(InventoryItem.name, InventoryItem.price)}

    def _orders(self, branch_id: str, window: DateRange) -> List[BranchOrder]:
        query = (
            self.db.query(BranchOrder)
            .options(selectinload(BranchOrder.lines))
            .filter(BranchOrder.branch_id == branch_id)
        )
        return window.apply(query, BranchOrder.order_date).order_by(BranchOrder.order_date.desc()).all()

    def _requests(self, branch_id: str, window: DateRange) -> List[RecyclingRequest]:
        query = self.db.query(RecyclingRequest).filter(RecyclingRequest.branch_id == branch_id)
        return window.apply(query, RecyclingRequest.request_date).order_by(RecyclingRequest.request_date.desc()).all()

    def _stock(self, branch_id: str) -> List[BranchInventoryItem]:
        return (
            self.db.query(BranchInventoryItem)
            .filter(BranchInventoryItem.branch_id == branch_id)
            .order_by(BranchInventoryItem.name)
            .all()
        )

    def _bins(self, branch_id: str) -> List[RecyclingBin]:
        return self.db.query(RecyclingBin).filter(RecyclingBin.branch_id == branch_id).order_by(RecyclingBin.id).all()

    def _drivers(self, branch_id: str) -> List[Driver]:
        return (
            self.db.query(Driver)
            .filter(Driver.branch_id == branch_id)
            .order_by(Driver.total_deliveries.desc(), Driver.id)
            .all()
        )

    @staticmethod
    def _revenue(orders: List[BranchOrder], prices: Dict[str, float]) -> float:
        delivered = (o for o in orders if o.status == OrderStatus.DELIVERED)
        return round(sum(prices.get(line.item_name, 0.0) * line.quantity for o in delivered for line in o.lines), 2)

    @staticmethod
    def _stock_value(items: List[BranchInventoryItem], prices: Dict[str, float]) -> float:
        return round(sum(prices.get(item.name, 0.0) * item.quantity for item in items), 2)

    @staticmethod
    def _count(rows, status) -> int:
        return sum(1 for row in rows if row.status == status)

    # ===== SECTIONS =====

    def _order_summary(self, orders: List[BranchOrder], prices: Dict[str, float]) -> Dict[str, Any]:
        total = len(orders)
        delivered = self._count(orders, OrderStatus.DELIVERED)
        return {
            "totalOrders": total,
            "pendingOrders": self._count(orders, OrderStatus.PENDING),
            "processingOrders": self._count(orders, OrderStatus.PROCESSING),
            "deliveredOrders": delivered,
            "cancelledOrders": self._count(orders, OrderStatus.CANCELLED),
            "totalRevenue": self._revenue(orders, prices),
            "deliveryRate": percent(delivered, total),
        }

    def _inventory_summary(self, items: List[BranchInventoryItem], prices: Dict[str, float]) -> Dict[str, Any]:
        total = len(items)
        low = sum(1 for item in items if item.quantity <= item.min_stock_level)
        out = sum(1 for item in items if item.quantity == 0)
        return {
            "totalItems": total,
            "lowStockItems": low,
            "outOfStockItems": out,
            "totalStockValue": self._stock_value(items, prices),
            "stockHealth": percent(total - low - out, total),
        }

    @staticmethod
    def _bin_summary(bins: List[RecyclingBin]) -> Dict[str, Any]:
        capacity = sum(b.capacity for b in bins)
        level = sum(b.current_level for b in bins)
        bands = {"critical": 0, "high": 0, "medium": 0, "low": 0, "empty": 0}
        for b in bins:
            if b.fill_percentage >= 80:
                bands["critical"] += 1
            elif b.fill_percentage >= 60:
                bands["high"] += 1
            elif b.fill_percentage >= 40:
                bands["medium"] += 1
            elif b.fill_percentage >= 20:
                bands["low"] += 1
            else:
                bands["empty"] += 1
        return {
            "totalBins": len(bins),
            **{f"{band}Bins": count for band, count in bands.items()},
            "totalCapacity": capacity,
            "totalCurrentLevel": level,
            "overallFillPercentage": percent(level, capacity),
        }

    def _request_summary(self, requests: List[RecyclingRequest]) -> Dict[str, Any]:
        total = len(requests)
        completed = self._count(requests, RequestStatus.COMPLETED)
        return {
            "totalRecyclingRequests": total,
            "pendingRecyclingRequests": self._count(requests, RequestStatus.PENDING),
            "approvedRecyclingRequests": self._count(requests, RequestStatus.APPROVED),
            "completedRecyclingRequests": completed,
            "completionRate": percent(completed, total),
        }

    def _driver_summary(self, drivers: List[Driver]) -> Dict[str, Any]:
        return {
            "totalDrivers": len(drivers),
            "availableDrivers": self._count(drivers, DriverStatus.AVAILABLE),
            "onDeliveryDrivers": self._count(drivers, DriverStatus.ON_DELIVERY),
            "offDutyDrivers": self._count(drivers, DriverStatus.OFF_DUTY),
            "topDrivers": [
                {
                    "name": d.name,
                    "totalDeliveries": d.total_deliveries,
                    "rating": d.rating,
                    "status": d.status.value,
                }
                for d in drivers[:5]
            ],
            "averageRating": round(sum(d.rating for d in drivers) / len(drivers), 1) if drivers else 0.0,
        }

    def _customer_summary(self) -> Dict[str, Any]:
        customers = self.db.query(func.count(User.id)).filter(User.role == UserRole.CUSTOMER)
        total = customers.scalar() or 0
        active = customers.filter(User.recycling_points > 0).scalar() or 0
        return {
            "totalCustomers": total,
            "activeCustomers": active,
            "engagementRate": percent(active, total),
        }

    def _daily_trends(self, branch_id: str) -> List[Dict[str, Any]]:
        """Orders and recycling drop-offs per UTC day for the last week, oldest first."""
        today = datetime.now(timezone.utc).date()
        first_day = today - timedelta(days=TREND_DAYS - 1)
        days = {first_day + timedelta(days=i): {"orders": 0, "recycling": 0} for i in range(TREND_DAYS)}
        since = day_start(first_day)

        for (order_date,) in self.db.query(BranchOrder.order_date).filter(
            BranchOrder.branch_id == branch_id, BranchOrder.order_date >= since
        ):
            bucket = days.get(order_date.date())
            if bucket is not None:
                bucket["orders"] += 1
        for (request_date,) in self.db.query(RecyclingRequest.request_date).filter(
            RecyclingRequest.branch_id == branch_id, RecyclingRequest.request_date >= since
        ):
            bucket = days.get(request_date.date())
            if bucket is not None:
                bucket["recycling"] += 1
        return [{"date": day.isoformat(), **counts} for day, counts in days.items()]

    # ===== REPORTS =====

    def branch_report(
        self, branch_id: str, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        window = DateRange(start_date, end_date)
        prices = self._prices()
        requests = self._requests(branch_id, window)
        logger.info(f"Branch report for {branch_id}, {window.start} to {window.end}")
        return {
            "orders": self._order_summary(self._orders(branch_id, window), prices),
            "inventory": self._inventory_summary(self._stock(branch_id), prices),
            "recycling": {
                "bins": self._bin_summary(self._bins(branch_id)),
                "requests": self._request_summary(requests),
            },
            "drivers": self._driver_summary(self._drivers(branch_id)),
            "customers": self._customer_summary(),
            "trends": {"dailyTrends": self._daily_trends(branch_id)},
            "generatedAt": datetime.now(timezone.utc),
            "dateRange": window.as_dict(),
        }

    def specific_report(
        self,
        branch_id: str,
        report_type: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Dict[str, Any]:
        """One section of the branch report together with its rows.

        Row lists are returned as ORM objects; the route serializes them.
        """
        if report_type not in REPORT_TYPES:
            raise BusinessRuleError("Invalid report type", validTypes=list(REPORT_TYPES))
        window = DateRange(start_date, end_date)
        prices = self._prices()

        if report_type == "orders":
            orders = self._orders(branch_id, window)
            summary = self._order_summary(orders, prices)
            data = {
                "orders": orders,
                "totalOrders": summary["totalOrders"],
                "totalRevenue": summary["totalRevenue"],
                "statusBreakdown": {
                    "pending": summary["pendingOrders"],
                    "processing": summary["processingOrders"],
                    "delivered": summary["deliveredOrders"],
                    "cancelled": summary["cancelledOrders"],
                },
            }
        elif report_type == "inventory":
            items = self._stock(branch_id)
            data = {
                "items": items,
                "totalItems": len(items),
                "lowStockItems": [item for item in items if item.quantity <= item.min_stock_level],
                "outOfStockItems": [item for item in items if item.quantity == 0],
                "totalStockValue": self._stock_value(items, prices),
            }
        elif report_type == "recycling":
            bins = self._bins(branch_id)
            requests = self._requests(branch_id, window)
            bin_summary = self._bin_summary(bins)
            request_summary = self._request_summary(requests)
            data = {
                "bins": bins,
                "requests": requests,
                "binStatistics": {
                    "totalBins": bin_summary["totalBins"],
                    "criticalBins": bin_summary["criticalBins"],
                    "totalCapacity": bin_summary["totalCapacity"],
                    "totalCurrentLevel": bin_summary["totalCurrentLevel"],
                },
                "requestStatistics": {
                    "totalRequests": request_summary["totalRecyclingRequests"],
                    "pendingRequests": request_summary["pendingRecyclingRequests"],
                    "approvedRequests": request_summary["approvedRecyclingRequests"],
                    "completedRequests": request_summary["completedRecyclingRequests"],
                },
            }
        else:
            drivers = self._drivers(branch_id)
            summary = self._driver_summary(drivers)
            data = {
                "drivers": drivers,
                "totalDrivers": summary["totalDrivers"],
                "statusBreakdown": {
                    "available": summary["availableDrivers"],
                    "onDelivery": summary["onDeliveryDrivers"],
                    "offDuty": summary["offDutyDrivers"],
                },
                "topPerformers": drivers[:10],
            }

        return {
            "reportType": report_type,
            "data": data,
            "generatedAt": datetime.now(timezone.utc),
            "dateRange": window.as_dict(),
        }
