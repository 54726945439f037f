"""Tests for factory orders, branch orders and their mirroring."""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from aquaflow.models.inventory import BranchInventoryItem, InventoryItem
from aquaflow.models.order import BranchOrder, Order, OrderSource, OrderStatus

API = "/api/v1"


def _create_order(client: TestClient, headers: dict, items: list) -> dict:
    response = client.post(f"{API}/Orders", headers=headers, json={
        "branchName": "Colombo Branch",
        "branchId": "BR001",
        "items": items,
    })
    assert response.status_code == 201, response.json()
    return response.json()["order"]


def _create_branch_order(client: TestClient, headers: dict, items: list) -> dict:
    response = client.post(f"{API}/BranchOrders", headers=headers, json={
        "branchId": "BR001",
        "branchName": "Colombo Branch",
        "items": items,
        "notes": "Weekly restock",
    })
    assert response.status_code == 201, response.json()
    return response.json()


class TestFactoryOrders:
    def test_create_order(self, client: TestClient, factory_headers, factory_stock):
        order = _create_order(client, factory_headers, [
            {"itemName": "RO Membranes", "quantity": 10},
            {"itemName": "Mud-filters", "quantity": 5},
        ])
        assert order["orderNumber"].startswith("ORD-")
        assert order["status"] == "Pending"
        assert order["source"] == "Direct"
        assert order["totalQuantity"] == 15
        assert [i["itemName"] for i in order["items"]] == ["RO Membranes", "Mud-filters"]

    def test_create_order_validates_stock(self, client: TestClient, factory_headers, factory_stock):
        response = client.post(f"{API}/Orders", headers=factory_headers, json={
            "branchName": "Colombo Branch",
            "items": [
                {"itemName": "UV Cartridge", "quantity": 10},
                {"itemName": "Flux Capacitor", "quantity": 1},
            ],
        })
        assert response.status_code == 400
        data = response.json()
        assert data["message"] == "Inventory validation failed"
        assert len(data["errors"]) == 2

    def test_create_order_requires_items(self, client: TestClient, factory_headers):
        response = client.post(f"{API}/Orders", headers=factory_headers, json={
            "branchName": "Colombo Branch",
            "items": [],
        })
        assert response.status_code == 400

    def test_customer_cannot_create_order(self, client: TestClient, customer_headers, factory_stock):
        response = client.post(f"{API}/Orders", headers=customer_headers, json={
            "branchName": "Colombo Branch",
            "items": [{"itemName": "RO Membranes", "quantity": 1}],
        })
        assert response.status_code == 403

    def test_accept_reserves_stock(self, client: TestClient, db_session: Session, factory_headers, factory_stock):
        order = _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 10}])

        response = client.put(f"{API}/Orders/{order['id']}/accept", headers=factory_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["order"]["status"] == "Accepted"
        assert data["order"]["acceptedBy"] == "Factory Manager"
        assert data["inventoryUpdates"] == [{
            "itemName": "RO Membranes",
            "quantityReduced": 10,
            "newFactoryQuantity": 40,
            "status": "In Stock",
        }]

        db_session.expire_all()
        assert db_session.get(InventoryItem, factory_stock["RO Membranes"].id).quantity == 40

    def test_accept_twice_rejected(self, client: TestClient, factory_headers, factory_stock):
        order = _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 10}])
        client.put(f"{API}/Orders/{order['id']}/accept", headers=factory_headers)

        response = client.put(f"{API}/Orders/{order['id']}/accept", headers=factory_headers)
        assert response.status_code == 400
        assert response.json()["currentStatus"] == "Accepted"

    def test_accept_is_all_or_nothing(self, client: TestClient, db_session: Session, factory_headers, factory_stock):
        order = _create_order(client, factory_headers, [
            {"itemName": "RO Membranes", "quantity": 10},
            {"itemName": "UV Cartridge", "quantity": 5},
        ])
        # stock drops between ordering and accepting
        factory_stock["UV Cartridge"].quantity = 2
        db_session.commit()

        response = client.put(f"{API}/Orders/{order['id']}/accept", headers=factory_headers)
        assert response.status_code == 400
        data = response.json()
        assert data["insufficientItems"][0]["itemName"] == "UV Cartridge"
        assert data["insufficientItems"][0]["available"] == 2

        db_session.expire_all()
        assert db_session.get(InventoryItem, factory_stock["RO Membranes"].id).quantity == 50
        assert db_session.get(Order, order["id"]).status == OrderStatus.PENDING

    def test_ship_after_accept_rejected(self, client: TestClient, factory_headers, factory_stock):
        order = _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 10}])
        client.put(f"{API}/Orders/{order['id']}/accept", headers=factory_headers)

        response = client.put(
            f"{API}/Orders/{order['id']}/status", headers=factory_headers, json={"status": "Shipped"}
        )
        assert response.status_code == 400
        assert response.json()["currentStatus"] == "Accepted"

    def test_ship_then_deliver(self, client: TestClient, db_session: Session, factory_headers, factory_stock, branch_stock):
        order = _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 10}])

        shipped = client.put(
            f"{API}/Orders/{order['id']}/status", headers=factory_headers, json={"status": "Shipped"}
        )
        assert shipped.status_code == 200
        assert shipped.json()["inventoryUpdates"][0]["newFactoryQuantity"] == 40

        delivered = client.put(
            f"{API}/Orders/{order['id']}/status", headers=factory_headers, json={"status": "Delivered"}
        )
        assert delivered.status_code == 200
        results = delivered.json()["itemResults"]
        assert results[0]["success"] is True
        assert results[0]["branchQuantity"] == 18

        db_session.expire_all()
        assert db_session.get(BranchInventoryItem, branch_stock.id).quantity == 18

    def test_deliver_requires_shipped(self, client: TestClient, factory_headers, factory_stock):
        order = _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 10}])
        response = client.put(
            f"{API}/Orders/{order['id']}/status", headers=factory_headers, json={"status": "Delivered"}
        )
        assert response.status_code == 400
        assert response.json()["currentStatus"] == "Pending"

    def test_invalid_status(self, client: TestClient, factory_headers, factory_stock):
        order = _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        response = client.put(
            f"{API}/Orders/{order['id']}/status", headers=factory_headers, json={"status": "Teleported"}
        )
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid status")

    def test_order_not_found(self, client: TestClient, factory_headers):
        response = client.get(f"{API}/Orders/999", headers=factory_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Order not found"

    def test_stats(self, client: TestClient, factory_headers, factory_stock):
        _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 3}])
        response = client.get(f"{API}/Orders/stats", headers=factory_headers)
        stats = response.json()["stats"]
        assert stats["totalOrders"] == 1
        assert stats["byStatus"]["Pending"] == 1
        assert stats["totalQuantity"] == 3

    def test_order_number_not_reused_after_delete(self, client: TestClient, factory_headers, factory_stock):
        first = _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        second = _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        assert client.delete(f"{API}/Orders/{first['id']}", headers=factory_headers).status_code == 200

        third = _create_order(client, factory_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        assert third["orderNumber"] != second["orderNumber"]
        assert third["orderNumber"].endswith("-003")

    def test_ship_skips_items_missing_from_catalog(
        self, client: TestClient, db_session: Session, factory_headers, factory_stock
    ):
        order = _create_order(client, factory_headers, [
            {"itemName": "RO Membranes", "quantity": 10},
            {"itemName": "UV Cartridge", "quantity": 2},
        ])
        db_session.delete(factory_stock["UV Cartridge"])
        db_session.commit()

        response = client.put(
            f"{API}/Orders/{order['id']}/status", headers=factory_headers, json={"status": "Shipped"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["order"]["status"] == "Shipped"
        assert body["skippedItems"] == ["UV Cartridge"]
        assert [u["itemName"] for u in body["inventoryUpdates"]] == ["RO Membranes"]

        db_session.expire_all()
        assert db_session.get(InventoryItem, factory_stock["RO Membranes"].id).quantity == 40

    def test_ship_short_item_fails_without_withdrawing(
        self, client: TestClient, db_session: Session, factory_headers, factory_stock
    ):
        order = _create_order(client, factory_headers, [
            {"itemName": "RO Membranes", "quantity": 10},
            {"itemName": "UV Cartridge", "quantity": 5},
        ])
        factory_stock["UV Cartridge"].quantity = 2
        db_session.commit()

        response = client.put(
            f"{API}/Orders/{order['id']}/status", headers=factory_headers, json={"status": "Shipped"}
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Insufficient stock for UV Cartridge. Available: 2, Required: 5"

        db_session.expire_all()
        assert db_session.get(InventoryItem, factory_stock["RO Membranes"].id).quantity == 50
        assert db_session.get(Order, order["id"]).status == OrderStatus.PENDING


class TestBranchOrders:
    def test_create_mirrors_factory_order(self, client: TestClient, db_session: Session, branch_headers):
        data = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 10}])
        order = data["order"]
        assert order["orderNumber"].startswith("BO-")
        assert order["requestedBy"] == "Branch Manager"
        assert order["factoryOrderId"] == data["factoryOrderId"]

        factory_order = db_session.get(Order, data["factoryOrderId"])
        assert factory_order.original_branch_order_id == order["id"]
        assert factory_order.source == OrderSource.BRANCH_REQUEST
        assert factory_order.notes == "Branch Request: Weekly restock"
        assert factory_order.total_quantity == 10

    def test_accept_mirrors_to_branch(self, client: TestClient, db_session: Session, branch_headers, factory_headers, factory_stock):
        data = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 10}])

        response = client.put(f"{API}/Orders/{data['factoryOrderId']}/accept", headers=factory_headers)
        assert response.status_code == 200

        branch_order = client.get(f"{API}/BranchOrders/{data['order']['id']}", headers=branch_headers).json()
        assert branch_order["order"]["status"] == "Accepted"

    def test_factory_cancel_mirrors_to_branch(self, client: TestClient, db_session: Session, branch_headers, factory_headers):
        data = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 4}])

        response = client.put(
            f"{API}/Orders/{data['factoryOrderId']}/status", headers=factory_headers, json={"status": "Cancelled"}
        )
        assert response.status_code == 200

        db_session.expire_all()
        assert db_session.get(BranchOrder, data["order"]["id"]).status == OrderStatus.CANCELLED

    def test_branch_cancel_mirrors_to_factory(self, client: TestClient, db_session: Session, branch_headers):
        data = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 4}])

        response = client.put(
            f"{API}/BranchOrders/{data['order']['id']}/status", headers=branch_headers, json={"status": "Cancelled"}
        )
        assert response.status_code == 200
        assert response.json()["order"]["status"] == "Cancelled"

        db_session.expire_all()
        assert db_session.get(Order, data["factoryOrderId"]).status == OrderStatus.CANCELLED

    def test_delivered_transfers_stock_and_skips_unknown(
        self, client: TestClient, db_session: Session, branch_headers, factory_stock, branch_stock
    ):
        data = _create_branch_order(client, branch_headers, [
            {"itemName": "RO Membranes", "quantity": 10},
            {"itemName": "Flux Capacitor", "quantity": 3},
        ])

        response = client.put(
            f"{API}/BranchOrders/{data['order']['id']}/status", headers=branch_headers, json={"status": "Delivered"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["order"]["status"] == "Delivered"
        assert body["order"]["deliveredDate"] is not None

        results = {r["itemName"]: r for r in body["itemResults"]}
        assert results["RO Membranes"]["success"] is True
        assert results["RO Membranes"]["factoryQuantity"] == 40
        assert results["RO Membranes"]["branchQuantity"] == 18
        assert results["Flux Capacitor"]["success"] is False
        assert results["Flux Capacitor"]["reason"] == "Item not found in factory inventory"

        db_session.expire_all()
        assert db_session.get(Order, data["factoryOrderId"]).status == OrderStatus.DELIVERED

    def test_delivered_skips_short_item(self, client: TestClient, branch_headers, factory_stock):
        data = _create_branch_order(client, branch_headers, [{"itemName": "UV Cartridge", "quantity": 9}])
        response = client.put(
            f"{API}/BranchOrders/{data['order']['id']}/status", headers=branch_headers, json={"status": "Delivered"}
        )
        assert response.status_code == 200
        result = response.json()["itemResults"][0]
        assert result["success"] is False
        assert result["reason"] == "Insufficient factory stock"
        assert result["available"] == 5

    def test_delivered_twice_rejected(self, client: TestClient, branch_headers, factory_stock):
        data = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        url = f"{API}/BranchOrders/{data['order']['id']}/status"
        assert client.put(url, headers=branch_headers, json={"status": "Delivered"}).status_code == 200

        response = client.put(url, headers=branch_headers, json={"status": "Delivered"})
        assert response.status_code == 400
        assert response.json()["currentStatus"] == "Delivered"

    def test_assign_driver_and_deliver(
        self, client: TestClient, db_session: Session, branch_headers, factory_stock, test_driver
    ):
        data = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 5}])
        order_id = data["order"]["id"]

        assigned = client.put(
            f"{API}/BranchOrders/{order_id}/assign-driver", headers=branch_headers, json={"driverId": test_driver.id}
        )
        assert assigned.status_code == 200
        body = assigned.json()
        assert body["order"]["status"] == "Processing"
        assert body["order"]["assignedDriverId"] == test_driver.id
        assert body["driver"]["status"] == "On Delivery"
        assert body["driver"]["assignedOrders"] == [order_id]

        db_session.expire_all()
        assert db_session.get(Order, data["factoryOrderId"]).status == OrderStatus.PROCESSING

        delivered = client.put(
            f"{API}/BranchOrders/{order_id}/status", headers=branch_headers, json={"status": "Delivered"}
        )
        assert delivered.status_code == 200
        driver = delivered.json()["driver"]
        assert driver["status"] == "Available"
        assert driver["assignedOrders"] == []
        assert driver["totalDeliveries"] == 1

    def test_busy_driver_cannot_be_assigned(self, client: TestClient, branch_headers, test_driver):
        first = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        second = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 1}])
        client.put(
            f"{API}/BranchOrders/{first['order']['id']}/assign-driver",
            headers=branch_headers, json={"driverId": test_driver.id},
        )

        response = client.put(
            f"{API}/BranchOrders/{second['order']['id']}/assign-driver",
            headers=branch_headers, json={"driverId": test_driver.id},
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Driver not found or not available"

    def test_edit_only_while_pending(self, client: TestClient, branch_headers, factory_headers, factory_stock):
        data = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 2}])
        order_id = data["order"]["id"]

        edited = client.put(f"{API}/BranchOrders/{order_id}", headers=branch_headers, json={
            "items": [{"itemName": "Mud-filters", "quantity": 7}],
        })
        assert edited.status_code == 200
        assert edited.json()["order"]["totalQuantity"] == 7

        factory_order = client.get(f"{API}/Orders/{data['factoryOrderId']}", headers=factory_headers).json()["order"]
        assert factory_order["items"][0]["itemName"] == "Mud-filters"

        client.put(f"{API}/Orders/{data['factoryOrderId']}/accept", headers=factory_headers)
        response = client.put(f"{API}/BranchOrders/{order_id}", headers=branch_headers, json={"notes": "late"})
        assert response.status_code == 400

    def test_delete_pending_removes_factory_order(self, client: TestClient, db_session: Session, branch_headers):
        data = _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 2}])
        response = client.delete(f"{API}/BranchOrders/{data['order']['id']}", headers=branch_headers)
        assert response.status_code == 200

        db_session.expire_all()
        assert db_session.get(BranchOrder, data["order"]["id"]) is None
        assert db_session.get(Order, data["factoryOrderId"]) is None

    def test_filter_by_status(self, client: TestClient, branch_headers):
        _create_branch_order(client, branch_headers, [{"itemName": "RO Membranes", "quantity": 2}])
        pending = client.get(f"{API}/BranchOrders", headers=branch_headers, params={"status": "Pending"})
        assert pending.json()["count"] == 1
        shipped = client.get(f"{API}/BranchOrders", headers=branch_headers, params={"status": "Shipped"})
        assert shipped.json()["count"] == 0
