"""Tests for the delivery procedures and the driver registry."""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from aquaflow.models.inventory import BranchInventoryItem, InventoryItem

API = "/api/v1"


def _branch_order(client: TestClient, headers: dict, items: list) -> dict:
    response = client.post(f"{API}/BranchOrders", headers=headers, json={
        "branchId": "BR001",
        "branchName": "Colombo Branch",
        "items": items,
    })
    assert response.status_code == 201, response.json()
    return response.json()


class TestDelivery:
    def test_factory_then_branch_delivery(
        self, client: TestClient, db_session: Session,
        branch_headers, factory_headers, factory_stock, branch_stock, test_driver,
    ):
        created = _branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 10}])
        branch_order_id = created["order"]["id"]
        client.put(
            f"{API}/BranchOrders/{branch_order_id}/assign-driver",
            headers=branch_headers, json={"driverId": test_driver.id},
        )

        shipped = client.post(f"{API}/Delivery/process", headers=factory_headers, json={
            "deliveryType": "factory",
            "orderId": created["factoryOrderId"],
        })
        assert shipped.status_code == 200
        body = shipped.json()
        assert body["message"] == "Factory delivery processed successfully"
        assert body["order"]["status"] == "Shipped"
        assert body["branchOrder"]["status"] == "Shipped"
        assert body["inventoryUpdates"][0]["newFactoryQuantity"] == 40

        received = client.post(f"{API}/Delivery/branch/{branch_order_id}", headers=branch_headers)
        assert received.status_code == 200
        body = received.json()
        assert body["order"]["status"] == "Delivered"
        assert body["factoryOrder"]["status"] == "Delivered"
        assert body["driver"]["status"] == "Available"
        assert body["driver"]["totalDeliveries"] == 1
        summary = body["deliverySummary"]
        assert summary["totalItems"] == 1
        assert summary["totalQuantity"] == 10
        assert summary["itemsFailed"] == []
        assert body["itemResults"][0]["branchQuantity"] == 18

        db_session.expire_all()
        assert db_session.get(InventoryItem, factory_stock["RO Membranes"].id).quantity == 40
        assert db_session.get(BranchInventoryItem, branch_stock.id).quantity == 18

    def test_branch_delivery_creates_missing_row(
        self, client: TestClient, db_session: Session, branch_headers, factory_headers, factory_stock
    ):
        created = _branch_order(client, branch_headers, [{"itemName": "Mud-filters", "quantity": 6}])
        client.post(f"{API}/Delivery/factory/{created['factoryOrderId']}", headers=factory_headers)

        response = client.post(f"{API}/Delivery/branch/{created['order']['id']}", headers=branch_headers)
        assert response.status_code == 200

        row = (
            db_session.query(BranchInventoryItem)
            .filter(BranchInventoryItem.branch_id == "BR001", BranchInventoryItem.name == "Mud-filters")
            .one()
        )
        assert row.quantity == 6
        assert row.category == "Filters"

    def test_branch_delivery_requires_shipped(self, client: TestClient, branch_headers, factory_stock):
        created = _branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        response = client.post(f"{API}/Delivery/branch/{created['order']['id']}", headers=branch_headers)
        assert response.status_code == 400
        assert response.json()["currentStatus"] == "Pending"

    def test_factory_delivery_reports_shortfall(
        self, client: TestClient, db_session: Session, branch_headers, factory_headers, factory_stock
    ):
        created = _branch_order(client, branch_headers, [
            {"itemName": "RO Membranes", "quantity": 10},
            {"itemName": "UV Cartridge", "quantity": 9},
        ])
        response = client.post(f"{API}/Delivery/factory/{created['factoryOrderId']}", headers=factory_headers)
        assert response.status_code == 400
        data = response.json()
        assert data["message"] == "Insufficient inventory for delivery"
        assert data["insufficientItems"] == [{
            "itemName": "UV Cartridge",
            "status": "insufficient",
            "message": "Insufficient stock for UV Cartridge. Available: 5, Required: 9",
            "available": 5,
            "required": 9,
        }]

        db_session.expire_all()
        assert db_session.get(InventoryItem, factory_stock["RO Membranes"].id).quantity == 50

    def test_invalid_delivery_type(self, client: TestClient, factory_headers):
        response = client.post(f"{API}/Delivery/process", headers=factory_headers, json={
            "deliveryType": "drone",
            "orderId": 1,
        })
        assert response.status_code == 400
        assert response.json()["allowed"] == ["factory", "branch"]

    def test_history_and_stats(self, client: TestClient, branch_headers, factory_headers, factory_stock):
        created = _branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 2}])
        client.post(f"{API}/Delivery/factory/{created['factoryOrderId']}", headers=factory_headers)
        client.post(f"{API}/Delivery/branch/{created['order']['id']}", headers=branch_headers)

        history = client.get(f"{API}/Delivery/history", headers=branch_headers, params={"branchId": "BR001"})
        assert history.json()["count"] == 1

        stats = client.get(f"{API}/Delivery/stats", headers=branch_headers).json()["stats"]
        assert stats["delivered"] == 1
        assert stats["deliveredToday"] == 1


class TestDrivers:
    def test_create_driver(self, client: TestClient, branch_headers):
        response = client.post(f"{API}/Drivers", headers=branch_headers, json={
            "name": "Ruwan Jayasinghe",
            "phone": "+94770000000",
            "email": "ruwan@aquaflow.lk",
            "vehicleNumber": "WP-KA-0001",
            "branchId": "BR001",
        })
        assert response.status_code == 201
        driver = response.json()["driver"]
        assert driver["driverCode"].startswith("DRV-")
        assert driver["status"] == "Available"
        assert driver["assignedOrders"] == []

    def test_duplicate_vehicle_rejected(self, client: TestClient, branch_headers, test_driver):
        response = client.post(f"{API}/Drivers", headers=branch_headers, json={
            "name": "Someone Else",
            "phone": "+94770000001",
            "email": "else@aquaflow.lk",
            "vehicleNumber": test_driver.vehicle_number,
        })
        assert response.status_code == 400

    def test_remove_order_returns_it_to_queue(
        self, client: TestClient, db_session: Session, branch_headers, test_driver
    ):
        created = _branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        order_id = created["order"]["id"]
        client.put(
            f"{API}/BranchOrders/{order_id}/assign-driver",
            headers=branch_headers, json={"driverId": test_driver.id},
        )

        response = client.delete(f"{API}/Drivers/{test_driver.id}/orders/{order_id}", headers=branch_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["driver"]["status"] == "Available"
        assert body["driver"]["assignedOrders"] == []
        assert body["order"]["status"] == "Pending"
        assert body["order"]["assignedDriverId"] is None

        factory = client.get(f"{API}/Orders/{created['factoryOrderId']}", headers=branch_headers).json()
        assert factory["order"]["status"] == "Pending"

    def test_remove_unassigned_order_rejected(self, client: TestClient, branch_headers, test_driver):
        created = _branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        response = client.delete(
            f"{API}/Drivers/{test_driver.id}/orders/{created['order']['id']}", headers=branch_headers
        )
        assert response.status_code == 400

    def test_cannot_delete_busy_driver(self, client: TestClient, branch_headers, test_driver):
        created = _branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        client.put(
            f"{API}/BranchOrders/{created['order']['id']}/assign-driver",
            headers=branch_headers, json={"driverId": test_driver.id},
        )
        response = client.delete(f"{API}/Drivers/{test_driver.id}", headers=branch_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot delete driver with active assignments"

    def test_assignments_and_stats(self, client: TestClient, branch_headers, test_driver):
        created = _branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        client.put(
            f"{API}/BranchOrders/{created['order']['id']}/assign-driver",
            headers=branch_headers, json={"driverId": test_driver.id},
        )

        assignments = client.get(f"{API}/Drivers/{test_driver.id}/assignments", headers=branch_headers).json()
        assert [o["id"] for o in assignments["orders"]] == [created["order"]["id"]]

        stats = client.get(f"{API}/Drivers/stats", headers=branch_headers).json()["stats"]
        assert stats["totalDrivers"] == 1
        assert stats["onDelivery"] == 1

        available = client.get(f"{API}/Drivers/available", headers=branch_headers).json()
        assert available["count"] == 0

    def test_set_status(self, client: TestClient, branch_headers, test_driver):
        response = client.put(
            f"{API}/Drivers/{test_driver.id}/status", headers=branch_headers, json={"status": "Off Duty"}
        )
        assert response.status_code == 200
        assert response.json()["driver"]["status"] == "Off Duty"

    def test_customer_cannot_create_driver(self, client: TestClient, customer_headers):
        response = client.post(f"{API}/Drivers", headers=customer_headers, json={
            "name": "X", "phone": "1", "email": "x@aquaflow.lk", "vehicleNumber": "V-1",
        })
        assert response.status_code == 403
