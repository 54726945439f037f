"""Pytest configuration and fixtures."""

import os

# Must be set before aquaflow.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from typing import Generator

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from aquaflow.core.rbac import UserRole
from aquaflow.core.security import get_password_hash, token_for_user
from aquaflow.db.base import Base
from aquaflow.db.session import get_db
from aquaflow.main import app
# Import all models to ensure they're registered with Base.metadata
from aquaflow.models import *
from aquaflow.models.branch import Branch
from aquaflow.models.driver import Driver
from aquaflow.models.inventory import BranchInventoryItem, InventoryItem
from aquaflow.models.recycling import RecyclingBin
from aquaflow.models.user import User
from aquaflow.services import audit_service
from aquaflow.services.geo_service import LocationDirectory

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_LOCATIONS = {
    "colombo": [6.9271, 79.8612],
    "dehiwala": [6.8511, 79.8658],
    "moratuwa": [6.7730, 79.8816],
    "negombo": [7.2083, 79.8358],
    "kandy": [7.2906, 80.6337],
}


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def locations() -> LocationDirectory:
    return LocationDirectory(TEST_LOCATIONS)


@pytest.fixture(scope="function")
def client(db_engine, db_session: Session, locations, monkeypatch) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    # Audit rows go to the test database
    monkeypatch.setattr(
        audit_service, "session_factory", sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    )
    app.state.locations = locations
    # Disable rate limiters during tests to avoid flaky failures
    from aquaflow.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db_session: Session, email: str, role: UserRole, name: str, **extra) -> User:
    user = User(
        email=email,
        password_hash=get_password_hash("testpass123"),
        role=role,
        name=name,
        is_active=True,
        **extra,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for_user(user)}"}


@pytest.fixture
def admin_user(db_session: Session) -> User:
    return _make_user(db_session, "admin@aquaflow.lk", UserRole.ADMIN, "Admin User")


@pytest.fixture
def factory_manager(db_session: Session) -> User:
    return _make_user(db_session, "factory@aquaflow.lk", UserRole.FACTORY_MANAGER, "Factory Manager")


@pytest.fixture
def branch_manager(db_session: Session) -> User:
    return _make_user(
        db_session, "branch@aquaflow.lk", UserRole.BRANCH_MANAGER, "Branch Manager",
        branch_id="BR001", branch_name="Colombo Branch",
    )


@pytest.fixture
def driver_user(db_session: Session) -> User:
    """A driver account, as used by emergency requests."""
    return _make_user(
        db_session, "driver@aquaflow.lk", UserRole.DRIVER, "Kamal Perera",
        branch_id="BR001", branch_name="Colombo Branch", salary=45000,
    )


@pytest.fixture
def customer_user(db_session: Session) -> User:
    return _make_user(db_session, "customer@example.com", UserRole.CUSTOMER, "Nimali Silva")


@pytest.fixture
def brigade_user(db_session: Session) -> User:
    return _make_user(db_session, "brigade@fire.lk", UserRole.FIRE_BRIGADE, "Colombo Fire Brigade")


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


@pytest.fixture
def factory_headers(factory_manager: User) -> dict:
    return _headers(factory_manager)


@pytest.fixture
def branch_headers(branch_manager: User) -> dict:
    return _headers(branch_manager)


@pytest.fixture
def driver_headers(driver_user: User) -> dict:
    return _headers(driver_user)


@pytest.fixture
def customer_headers(customer_user: User) -> dict:
    return _headers(customer_user)


@pytest.fixture
def brigade_headers(brigade_user: User) -> dict:
    return _headers(brigade_user)


@pytest.fixture
def test_branch(db_session: Session) -> Branch:
    branch = Branch(
        code="BR001",
        name="Colombo Branch",
        location="Colombo",
        manager_name="Branch Manager",
        latitude=6.9271,
        longitude=79.8612,
    )
    db_session.add(branch)
    db_session.commit()
    db_session.refresh(branch)
    return branch


@pytest.fixture
def factory_stock(db_session: Session) -> dict:
    """Factory catalog: RO Membranes 50, Mud-filters 75, UV Cartridge 5."""
    items = {
        "RO Membranes": InventoryItem(name="RO Membranes", quantity=50, price=4500, category="Filters"),
        "Mud-filters": InventoryItem(name="Mud-filters", quantity=75, price=1200, category="Filters"),
        "UV Cartridge": InventoryItem(name="UV Cartridge", quantity=5, price=3800, category="Cartridges"),
    }
    db_session.add_all(items.values())
    db_session.commit()
    for item in items.values():
        db_session.refresh(item)
    return items


@pytest.fixture
def branch_stock(db_session: Session) -> BranchInventoryItem:
    row = BranchInventoryItem(
        branch_id="BR001",
        branch_name="Colombo Branch",
        name="RO Membranes",
        quantity=8,
        min_stock_level=10,
        max_stock_level=100,
    )
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def test_driver(db_session: Session) -> Driver:
    """A delivery driver from the driver registry."""
    driver = Driver(
        driver_code="DRV-20250101-001",
        name="Sunil Fernando",
        phone="+94771234567",
        email="sunil@aquaflow.lk",
        vehicle_number="WP-CAB-1234",
        branch_id="BR001",
    )
    db_session.add(driver)
    db_session.commit()
    db_session.refresh(driver)
    return driver


@pytest.fixture
def test_bin(db_session: Session) -> RecyclingBin:
    recycling_bin = RecyclingBin(
        bin_code="BIN-BR001-20250101-001",
        branch_id="BR001",
        branch_name="Colombo Branch",
        location="Front entrance",
        capacity=100,
        current_level=70,
    )
    db_session.add(recycling_bin)
    db_session.commit()
    db_session.refresh(recycling_bin)
    return recycling_bin


@pytest.fixture
def other_driver(db_session: Session) -> User:
    return _make_user(db_session, "other.driver@aquaflow.lk", UserRole.DRIVER, "Other Driver", branch_id="BR002")


@pytest.fixture
def other_driver_headers(other_driver: User) -> dict:
    return _headers(other_driver)
