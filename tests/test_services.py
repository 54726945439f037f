"""Unit tests for the service helpers that the routes build on."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session

from aquaflow.core.errors import BusinessRuleError, NotFoundError, PreconditionError
from aquaflow.models.driver import Driver, DriverStatus
from aquaflow.models.operations import AuditLogEntry, SideEffectKey
from aquaflow.services.emergency_service import format_amount, parse_emergency_status
from aquaflow.services.geo_service import LocationDirectory, format_duration, haversine_km
from aquaflow.services.identifiers import daily_sequence, random_code
from aquaflow.services.idempotency import already_ran, run_once
from aquaflow.services.recycling_service import points_for
from aquaflow.services.transitions import compare_and_set_status


class TestGeo:
    def test_haversine(self):
        assert haversine_km(6.9271, 79.8612, 6.9271, 79.8612) == 0
        assert haversine_km(6.9271, 79.8612, 7.2906, 80.6337) == pytest.approx(94, abs=2)

    @pytest.mark.parametrize("hours,expected", [
        (1.5, "1h 30m"),
        (0.25, "15m"),
        (2, "2h 0m"),
        (0.999, "1h 0m"),
    ])
    def test_format_duration(self, hours, expected):
        assert format_duration(hours) == expected

    def test_lookup_matches_substring(self, locations: LocationDirectory):
        assert locations.lookup("Warehouse 4, Negombo Road") == (7.2083, 79.8358)
        assert locations.lookup("Galle Face") is None
        assert locations.lookup(None) is None

    def test_within(self, locations: LocationDirectory):
        nearby = locations.within((6.9271, 79.8612), 20)
        assert (6.8511, 79.8658) in nearby
        assert (7.2906, 80.6337) not in nearby


class TestIdentifiers:
    def test_daily_sequence_counts_issued(self, db_session: Session, test_driver):
        day = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert daily_sequence(db_session, Driver.driver_code, "DRV", now=day) == "DRV-20250101-002"
        assert daily_sequence(db_session, Driver.driver_code, "DRV", now=datetime(2025, 1, 2)) == "DRV-20250102-001"

    def test_daily_sequence_follows_highest_number(self, db_session: Session, test_driver):
        day = datetime(2025, 1, 1, tzinfo=timezone.utc)
        db_session.add(Driver(
            driver_code="DRV-20250101-002",
            name="Ruwan Jayasinghe",
            phone="+94777654321",
            email="ruwan@aquaflow.lk",
            vehicle_number="WP-CAB-5678",
            branch_id="BR001",
        ))
        db_session.delete(test_driver)
        db_session.flush()

        assert daily_sequence(db_session, Driver.driver_code, "DRV", now=day) == "DRV-20250101-003"

    def test_daily_sequence_past_width(self, db_session: Session, test_driver):
        day = datetime(2025, 1, 1, tzinfo=timezone.utc)
        test_driver.driver_code = "DRV-20250101-999"
        db_session.add(Driver(
            driver_code="DRV-20250101-1000",
            name="Ruwan Jayasinghe",
            phone="+94777654321",
            email="ruwan@aquaflow.lk",
            vehicle_number="WP-CAB-5678",
            branch_id="BR001",
        ))
        db_session.flush()

        assert daily_sequence(db_session, Driver.driver_code, "DRV", now=day) == "DRV-20250101-1001"

    def test_random_code_shape(self):
        code = random_code("REC")
        prefix, day, number = code.split("-")
        assert prefix == "REC"
        assert len(day) == 8
        assert len(number) == 9


class TestTransitions:
    def test_moves_expected_status(self, db_session: Session, test_driver):
        compare_and_set_status(
            db_session, Driver, test_driver.id, DriverStatus.AVAILABLE, DriverStatus.OFF_DUTY, label="Driver"
        )
        assert test_driver.status == DriverStatus.OFF_DUTY

    def test_wrong_status_reports_current(self, db_session: Session, test_driver):
        with pytest.raises(PreconditionError) as exc_info:
            compare_and_set_status(
                db_session, Driver, test_driver.id, DriverStatus.ON_DELIVERY, DriverStatus.AVAILABLE, label="Driver"
            )
        assert exc_info.value.current_status == "Available"
        assert exc_info.value.extra["currentStatus"] == "Available"

    def test_missing_row(self, db_session: Session):
        with pytest.raises(NotFoundError):
            compare_and_set_status(db_session, Driver, 999, DriverStatus.AVAILABLE, DriverStatus.OFF_DUTY)


class TestRunOnce:
    @pytest.fixture(autouse=True)
    def open_transaction(self, db_session: Session):
        db_session.add(AuditLogEntry(action="login", entity_type="users"))
        db_session.flush()

    def test_effect_runs_once(self, db_session: Session):
        calls = []

        def effect():
            calls.append(1)
            entry = AuditLogEntry(action="bonus", entity_type="emergency_requests", entity_id="1")
            db_session.add(entry)
            db_session.flush()
            return entry

        first = run_once(db_session, "emergency_requests", 1, "driver_bonus", effect)
        second = run_once(db_session, "emergency_requests", 1, "driver_bonus", effect)

        assert first is not None
        assert second is None
        assert calls == [1]
        assert already_ran(db_session, "emergency_requests", 1, "driver_bonus")

        key = db_session.query(SideEffectKey).one()
        assert key.result_ref == str(first.id)

    def test_effects_are_keyed_separately(self, db_session: Session):
        run_once(db_session, "emergency_requests", 1, "driver_bonus", lambda: "done")
        assert run_once(db_session, "emergency_requests", 2, "driver_bonus", lambda: "done") == "done"
        assert run_once(db_session, "emergency_requests", 1, "notify", lambda: "done") == "done"


class TestSmallHelpers:
    @pytest.mark.parametrize("weight,points", [(0.1, 0), (1, 1), (12.7, 12), (100, 100)])
    def test_points_for(self, weight, points):
        assert points_for(weight) == points

    def test_format_amount(self):
        assert format_amount(5000) == "Rs. 5,000"
        assert format_amount(1250000) == "Rs. 1,250,000"

    def test_parse_emergency_status(self):
        assert parse_emergency_status("In Progress").value == "In Progress"
        with pytest.raises(BusinessRuleError):
            parse_emergency_status("Lost")
