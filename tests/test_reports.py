"""Tests for the branch reports."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from aquaflow.models.order import BranchOrder, OrderStatus

API = "/api/v1"


@pytest.fixture
def branch_activity(client: TestClient, db_session: Session, branch_headers, customer_headers, factory_stock):
    """Two branch orders (one delivered) and one recycling drop-off at BR001."""
    ids = []
    for name, quantity in (("RO Membranes", 2), ("Mud-filters", 3)):
        response = client.post(f"{API}/BranchOrders", headers=branch_headers, json={
            "branchId": "BR001",
            "branchName": "Colombo Branch",
            "items": [{"itemName": name, "quantity": quantity}],
        })
        assert response.status_code == 201, response.json()
        ids.append(response.json()["order"]["id"])
    db_session.get(BranchOrder, ids[0]).status = OrderStatus.DELIVERED
    db_session.commit()

    client.post(f"{API}/RecyclingRequests", headers=customer_headers, json={
        "branchId": "BR001",
        "branchName": "Colombo Branch",
        "wasteWeight": 6,
    })
    return ids


class TestBranchReport:
    def test_summary(
        self, client: TestClient, branch_headers, branch_activity, branch_stock, test_bin, test_driver, customer_user
    ):
        response = client.get(f"{API}/Reports/branch/BR001", headers=branch_headers)
        assert response.status_code == 200
        reports = response.json()["reports"]

        orders = reports["orders"]
        assert orders["totalOrders"] == 2
        assert orders["deliveredOrders"] == 1
        assert orders["pendingOrders"] == 1
        assert orders["totalRevenue"] == 9000
        assert orders["deliveryRate"] == 50.0

        inventory = reports["inventory"]
        assert inventory["totalItems"] == 1
        assert inventory["lowStockItems"] == 1
        assert inventory["totalStockValue"] == 36000

        bins = reports["recycling"]["bins"]
        assert bins["totalBins"] == 1
        assert bins["highBins"] == 1
        assert bins["overallFillPercentage"] == 70.0
        assert reports["recycling"]["requests"]["pendingRecyclingRequests"] == 1

        drivers = reports["drivers"]
        assert drivers["totalDrivers"] == 1
        assert drivers["availableDrivers"] == 1
        assert drivers["topDrivers"][0]["name"] == "Sunil Fernando"

        assert reports["customers"]["totalCustomers"] == 1
        assert reports["customers"]["activeCustomers"] == 0

    def test_daily_trends(self, client: TestClient, branch_headers, branch_activity):
        trends = client.get(f"{API}/Reports/branch/BR001", headers=branch_headers).json()["reports"]["trends"]
        days = trends["dailyTrends"]
        assert len(days) == 7
        assert days[-1]["date"] == datetime.now(timezone.utc).date().isoformat()
        assert days[-1]["orders"] == 2
        assert days[-1]["recycling"] == 1
        assert sum(day["orders"] for day in days[:-1]) == 0

    def test_date_range_filters_activity(self, client: TestClient, branch_headers, branch_activity):
        response = client.get(
            f"{API}/Reports/branch/BR001", headers=branch_headers,
            params={"startDate": "2020-01-01", "endDate": "2020-01-31"},
        )
        reports = response.json()["reports"]
        assert reports["orders"]["totalOrders"] == 0
        assert reports["recycling"]["requests"]["totalRecyclingRequests"] == 0
        assert reports["dateRange"] == {"start": "2020-01-01", "end": "2020-01-31"}

    def test_other_branch_is_empty(self, client: TestClient, branch_headers, branch_activity):
        reports = client.get(f"{API}/Reports/branch/BR002", headers=branch_headers).json()["reports"]
        assert reports["orders"]["totalOrders"] == 0
        assert reports["orders"]["deliveryRate"] == 0

    def test_inverted_range(self, client: TestClient, branch_headers):
        response = client.get(
            f"{API}/Reports/branch/BR001", headers=branch_headers,
            params={"startDate": "2025-02-01", "endDate": "2025-01-01"},
        )
        assert response.status_code == 400

    def test_customer_forbidden(self, client: TestClient, customer_headers):
        assert client.get(f"{API}/Reports/branch/BR001", headers=customer_headers).status_code == 403


class TestSpecificReport:
    def test_orders(self, client: TestClient, branch_headers, branch_activity):
        body = client.get(f"{API}/Reports/branch/BR001/orders", headers=branch_headers).json()
        assert body["reportType"] == "orders"
        data = body["data"]
        assert len(data["orders"]) == 2
        assert data["orders"][0]["orderNumber"].startswith("BO-")
        assert data["totalRevenue"] == 9000
        assert data["statusBreakdown"] == {"pending": 1, "processing": 0, "delivered": 1, "cancelled": 0}

    def test_inventory(self, client: TestClient, branch_headers, factory_stock, branch_stock):
        data = client.get(f"{API}/Reports/branch/BR001/inventory", headers=branch_headers).json()["data"]
        assert [item["name"] for item in data["lowStockItems"]] == ["RO Membranes"]
        assert data["outOfStockItems"] == []
        assert data["totalStockValue"] == 36000

    def test_recycling(self, client: TestClient, branch_headers, branch_activity, test_bin):
        data = client.get(f"{API}/Reports/branch/BR001/recycling", headers=branch_headers).json()["data"]
        assert [b["binCode"] for b in data["bins"]] == [test_bin.bin_code]
        assert data["binStatistics"]["totalCurrentLevel"] == 70
        assert data["requestStatistics"]["totalRequests"] == 1

    def test_drivers(self, client: TestClient, branch_headers, test_driver):
        data = client.get(f"{API}/Reports/branch/BR001/drivers", headers=branch_headers).json()["data"]
        assert data["statusBreakdown"]["available"] == 1
        assert [d["driverCode"] for d in data["topPerformers"]] == ["DRV-20250101-001"]

    def test_unknown_type(self, client: TestClient, branch_headers):
        response = client.get(f"{API}/Reports/branch/BR001/weather", headers=branch_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid report type"
