"""Emergency requests from fire brigades and the driver bonuses they earn.

Completing an assigned, bonus-eligible request creates one ``DriverBonus``
for the driver. Bonus creation is at most once per request (side-effect key
plus a unique column) and best-effort on the status path: a failure is logged
and the status change stands.
"""

import calendar
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from aquaflow.core.config import settings
from aquaflow.core.errors import AppError, BusinessRuleError, ForbiddenError, NotFoundError
from aquaflow.core.rbac import TokenData, UserRole
from aquaflow.db.base import utcnow
from aquaflow.models.emergency import (
    BonusStatus,
    DriverBonus,
    DriverBonusStatus,
    EmergencyRequest,
    EmergencyStatus,
)
from aquaflow.models.user import User
from aquaflow.services.geo_service import LocationDirectory
from aquaflow.services.identifiers import daily_sequence
from aquaflow.services.idempotency import run_once

logger = logging.getLogger(__name__)

DRIVER_SETTABLE_STATUSES = (EmergencyStatus.IN_PROGRESS, EmergencyStatus.COMPLETED)
BONUS_EFFECT = "driver_bonus"
ASSIGNMENT_FIELDS = ("assigned_branch_id", "assigned_driver_id", "admin_notes", "estimated_delivery_time")


def format_amount(amount: float) -> str:
    return f"{settings.bonus_currency_prefix} {amount:,.0f}"


def parse_emergency_status(value: Any) -> EmergencyStatus:
    if isinstance(value, EmergencyStatus):
        return value
    try:
        return EmergencyStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in EmergencyStatus)
        raise BusinessRuleError(f"Invalid status. Must be one of: {allowed}")


def _bonus_totals(bonuses: List[DriverBonus]) -> Dict[str, Any]:
    total = sum(b.bonus_amount for b in bonuses)
    paid = sum(b.bonus_amount for b in bonuses if b.status == DriverBonusStatus.PAID)
    pending = sum(b.bonus_amount for b in bonuses if b.status == DriverBonusStatus.APPROVED)
    return {
        "totalAmount": total,
        "paidAmount": paid,
        "pendingAmount": pending,
        "formattedTotalAmount": format_amount(total),
        "formattedPaidAmount": format_amount(paid),
        "formattedPendingAmount": format_amount(pending),
    }


class EmergencyService:
    def __init__(self, db: Session, directory: Optional[LocationDirectory] = None):
        self.db = db
        self.directory = directory

    # ===== REQUESTS =====

    def get(self, request_id: int) -> EmergencyRequest:
        request = self.db.get(EmergencyRequest, request_id)
        if request is None:
            raise NotFoundError("Emergency request not found")
        return request

    def list(
        self,
        status: Optional[EmergencyStatus] = None,
        brigade_id: Optional[str] = None,
        branch_id: Optional[str] = None,
        driver_id: Optional[int] = None,
    ) -> List[EmergencyRequest]:
        query = self.db.query(EmergencyRequest)
        if status:
            query = query.filter(EmergencyRequest.status == status)
        if brigade_id:
            query = query.filter(EmergencyRequest.brigade_id == brigade_id)
        if branch_id:
            query = query.filter(EmergencyRequest.assigned_branch_id == branch_id)
        if driver_id is not None:
            query = query.filter(EmergencyRequest.assigned_driver_id == driver_id)
        return query.order_by(EmergencyRequest.request_date.desc(), EmergencyRequest.id.desc()).all()

    def create(self, data: Dict[str, Any]) -> EmergencyRequest:
        """Open a request; missing coordinates are looked up from the brigade location."""
        data = dict(data)
        if (data.get("latitude") is None or data.get("longitude") is None) and self.directory is not None:
            coords = self.directory.lookup(data.get("brigade_location"))
            if coords is not None:
                data["latitude"], data["longitude"] = coords
            else:
                logger.info(f"No coordinates known for '{data.get('brigade_location')}'")
        request = EmergencyRequest(
            request_code=daily_sequence(self.db, EmergencyRequest.request_code, "EMR"),
            bonus_amount=settings.default_bonus_amount,
            **data,
        )
        self.db.add(request)
        self.db.flush()
        logger.warning(
            f"Emergency {request.request_code} from {request.brigade_name}: "
            f"{request.request_type.value}, priority {request.priority.value}"
        )
        return request

    def _check_driver_user(self, driver_id: int) -> User:
        driver = self.db.get(User, driver_id)
        if driver is None or driver.role != UserRole.DRIVER:
            raise NotFoundError("Driver not found")
        return driver

    def update_status(self, request_id: int, data: Dict[str, Any], actor: TokenData) -> Dict[str, Any]:
        """Change a request's status and assignment.

        Drivers may only touch requests assigned to them and only move them
        to In Progress or Completed.
        """
        status = parse_emergency_status(data.get("status"))
        request = self.get(request_id)

        if actor.role == UserRole.DRIVER:
            if request.assigned_driver_id is not None and request.assigned_driver_id != actor.user_id:
                raise ForbiddenError("Access denied. You can only update requests assigned to you.")
            if status not in DRIVER_SETTABLE_STATUSES:
                raise ForbiddenError('Drivers can only set status to "In Progress" or "Completed"')

        if data.get("assigned_driver_id") is not None:
            self._check_driver_user(data["assigned_driver_id"])
        for field in ASSIGNMENT_FIELDS:
            if data.get(field) is not None:
                setattr(request, field, data[field])
        request.status = status
        if status == EmergencyStatus.COMPLETED and request.actual_delivery_time is None:
            request.actual_delivery_time = utcnow()
        self.db.flush()
        logger.info(f"Emergency {request.request_code} -> {status.value}")

        bonus = None
        if status == EmergencyStatus.COMPLETED and request.assigned_driver_id and request.bonus_eligible:
            try:
                with self.db.begin_nested():
                    bonus = self.award_bonus(request)
            except (AppError, SQLAlchemyError) as e:
                logger.error(f"Bonus for {request.request_code} not created: {e}")
        return {"request": request, "bonus": bonus}

    def delete(self, request_id: int) -> EmergencyRequest:
        request = self.get(request_id)
        self.db.delete(request)
        self.db.flush()
        return request

    # ===== BONUSES =====

    def existing_bonus(self, request_id: int) -> Optional[DriverBonus]:
        return self.db.query(DriverBonus).filter(DriverBonus.emergency_request_id == request_id).first()

    def award_bonus(self, request: EmergencyRequest) -> DriverBonus:
        """Create the driver's bonus for ``request`` unless one already exists."""

        def _create() -> DriverBonus:
            delivered = request.actual_delivery_time or utcnow()
            bonus = DriverBonus(
                driver_id=request.assigned_driver_id,
                emergency_request_id=request.id,
                bonus_amount=request.bonus_amount or settings.default_bonus_amount,
                bonus_type=request.request_type.value,
                brigade_name=request.brigade_name,
                brigade_location=request.brigade_location,
                delivery_date=delivered,
                status=DriverBonusStatus.APPROVED,
                month=delivered.month,
                year=delivered.year,
                notes=f"Bonus for emergency water supply delivery to {request.brigade_name}",
            )
            self.db.add(bonus)
            request.bonus_status = BonusStatus.BONUS_CREATED
            self.db.flush()
            logger.info(
                f"Bonus {format_amount(bonus.bonus_amount)} for driver {bonus.driver_id} "
                f"on {request.request_code}"
            )
            return bonus

        bonus = run_once(self.db, "emergency_request", request.id, BONUS_EFFECT, _create)
        return bonus if bonus is not None else self.existing_bonus(request.id)

    def create_bonus(self, request_id: int) -> DriverBonus:
        request = self.get(request_id)
        if request.status != EmergencyStatus.COMPLETED:
            raise BusinessRuleError("Emergency request must be completed to create bonus")
        if not request.assigned_driver_id:
            raise BusinessRuleError("Emergency request has no assigned driver")
        if not request.bonus_eligible:
            raise BusinessRuleError("This emergency request is not eligible for bonus")
        return self.award_bonus(request)

    def _driver_bonuses(self, driver_id: int, month: Optional[int], year: Optional[int]) -> List[DriverBonus]:
        query = self.db.query(DriverBonus).filter(DriverBonus.driver_id == driver_id)
        if month and year:
            query = query.filter(DriverBonus.month == month, DriverBonus.year == year)
        return query.order_by(DriverBonus.delivery_date.desc(), DriverBonus.id.desc()).all()

    def bonus_history(self, driver_id: int, month: Optional[int] = None, year: Optional[int] = None) -> Dict[str, Any]:
        bonuses = self._driver_bonuses(driver_id, month, year)
        return {
            "bonuses": bonuses,
            "summary": {"totalBonuses": len(bonuses), **_bonus_totals(bonuses)},
        }

    def paysheet(self, driver_id: int, month: Optional[int] = None, year: Optional[int] = None) -> Dict[str, Any]:
        """Base salary plus the bonuses earned in one month (default: current)."""
        driver = self.db.get(User, driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        now = datetime.now(timezone.utc)
        month = month or now.month
        year = year or now.year
        if not 1 <= month <= 12:
            raise BusinessRuleError("Month must be between 1 and 12")

        bonuses = self._driver_bonuses(driver_id, month, year)
        totals = _bonus_totals(bonuses)
        base_salary = driver.salary or 0
        total_earnings = base_salary + totals["totalAmount"]
        return {
            "driver": {"id": driver.id, "name": driver.name, "branchName": driver.branch_name},
            "period": {"month": month, "year": year, "monthName": calendar.month_name[month]},
            "salary": {"baseSalary": base_salary, "formattedBaseSalary": format_amount(base_salary)},
            "bonuses": {**totals, "count": len(bonuses), "details": bonuses},
            "total": {"totalEarnings": total_earnings, "formattedTotalEarnings": format_amount(total_earnings)},
        }
