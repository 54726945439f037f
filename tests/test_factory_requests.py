"""Tests for branch requests to the factory and customer purchases."""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from aquaflow.models.factory_request import FactoryRequest, FactoryRequestStatus
from aquaflow.models.inventory import BranchInventoryItem, InventoryItem

API = "/api/v1"


def _request(client: TestClient, headers: dict, items: list) -> dict:
    response = client.post(f"{API}/FactoryRequests", headers=headers, json={
        "branchId": "BR001",
        "branchName": "Colombo Branch",
        "items": items,
    })
    assert response.status_code == 201, response.json()
    return response.json()["request"]


class TestFactoryRequests:
    def test_create(self, client: TestClient, branch_headers):
        request = _request(client, branch_headers, [{"itemName": "RO Membranes", "requestedQuantity": 10}])
        assert request["requestCode"].startswith("FR-")
        assert request["status"] == "pending"
        assert request["requestedBy"] == "Branch Manager"
        assert request["items"][0]["requestedQuantity"] == 10

    def test_line_needs_quantity(self, client: TestClient, branch_headers):
        response = client.post(f"{API}/FactoryRequests", headers=branch_headers, json={
            "branchId": "BR001",
            "branchName": "Colombo Branch",
            "items": [{"itemName": "RO Membranes"}],
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    def test_factory_cannot_create(self, client: TestClient, factory_headers):
        response = client.post(f"{API}/FactoryRequests", headers=factory_headers, json={
            "branchId": "BR001",
            "branchName": "Colombo Branch",
            "items": [{"itemName": "RO Membranes", "requestedQuantity": 1}],
        })
        assert response.status_code == 403

    def test_approve_transfers_stock(
        self, client: TestClient, db_session: Session,
        branch_headers, factory_headers, factory_stock, branch_stock,
    ):
        request = _request(client, branch_headers, [
            {"itemName": "RO Membranes", "requestedQuantity": 10},
            {"itemName": "Mud-filters", "requestedQuantity": 5},
        ])

        response = client.put(f"{API}/FactoryRequests/{request['id']}/approve", headers=factory_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["request"]["status"] == "fulfilled"
        assert body["request"]["processedBy"] == "Factory Manager"
        assert body["transfers"][0] == {
            "itemName": "RO Membranes", "quantity": 10, "factoryQuantity": 40, "branchQuantity": 18,
        }
        assert body["transfers"][1]["branchQuantity"] == 5

        db_session.expire_all()
        assert db_session.get(InventoryItem, factory_stock["Mud-filters"].id).quantity == 70
        mud = (
            db_session.query(BranchInventoryItem)
            .filter(BranchInventoryItem.branch_id == "BR001", BranchInventoryItem.name == "Mud-filters")
            .one()
        )
        assert mud.quantity == 5
        assert mud.branch_name == "Colombo Branch"

    def test_approve_insufficient_moves_nothing(
        self, client: TestClient, db_session: Session,
        branch_headers, factory_headers, factory_stock, branch_stock,
    ):
        request = _request(client, branch_headers, [
            {"itemName": "RO Membranes", "requestedQuantity": 10},
            {"itemName": "UV Cartridge", "requestedQuantity": 9},
        ])

        response = client.put(f"{API}/FactoryRequests/{request['id']}/approve", headers=factory_headers)
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Insufficient factory inventory for this request"
        assert [i["itemName"] for i in body["insufficientItems"]] == ["UV Cartridge"]

        db_session.expire_all()
        assert db_session.get(InventoryItem, factory_stock["RO Membranes"].id).quantity == 50
        assert db_session.get(BranchInventoryItem, branch_stock.id).quantity == 8
        assert db_session.get(FactoryRequest, request["id"]).status == FactoryRequestStatus.PENDING

    def test_approve_twice_rejected(self, client: TestClient, branch_headers, factory_headers, factory_stock):
        request = _request(client, branch_headers, [{"itemName": "RO Membranes", "requestedQuantity": 1}])
        url = f"{API}/FactoryRequests/{request['id']}/approve"
        assert client.put(url, headers=factory_headers).status_code == 200

        response = client.put(url, headers=factory_headers)
        assert response.status_code == 400
        assert response.json()["currentStatus"] == "fulfilled"

    def test_fulfill_requires_approved(
        self, client: TestClient, db_session: Session, branch_headers, factory_headers, factory_stock
    ):
        request = _request(client, branch_headers, [{"itemName": "RO Membranes", "requestedQuantity": 4}])
        url = f"{API}/FactoryRequests/{request['id']}/fulfill"
        assert client.put(url, headers=factory_headers).status_code == 400

        db_session.get(FactoryRequest, request["id"]).status = FactoryRequestStatus.APPROVED
        db_session.commit()

        response = client.put(url, headers=factory_headers)
        assert response.status_code == 200
        assert response.json()["request"]["status"] == "fulfilled"
        assert response.json()["transfers"][0]["factoryQuantity"] == 46

    def test_reject(self, client: TestClient, branch_headers, factory_headers):
        request = _request(client, branch_headers, [{"itemName": "RO Membranes", "requestedQuantity": 1}])
        url = f"{API}/FactoryRequests/{request['id']}/reject"

        response = client.put(url, headers=factory_headers, json={"reason": "Stock reserved for export"})
        assert response.status_code == 200
        assert response.json()["request"]["status"] == "rejected"
        assert response.json()["request"]["rejectionReason"] == "Stock reserved for export"

        again = client.put(url, headers=factory_headers, json={"reason": "Still no"})
        assert again.status_code == 400

    def test_list_filters(self, client: TestClient, branch_headers, factory_headers):
        first = _request(client, branch_headers, [{"itemName": "RO Membranes", "requestedQuantity": 1}])
        _request(client, branch_headers, [{"itemName": "Mud-filters", "requestedQuantity": 1}])
        client.put(f"{API}/FactoryRequests/{first['id']}/reject", headers=factory_headers)

        pending = client.get(f"{API}/FactoryRequests", headers=factory_headers, params={"status": "pending"}).json()
        assert pending["count"] == 1
        by_branch = client.get(f"{API}/FactoryRequests", headers=factory_headers, params={"branchId": "BR001"}).json()
        assert by_branch["count"] == 2

    def test_delete(self, client: TestClient, branch_headers, factory_headers):
        request = _request(client, branch_headers, [{"itemName": "RO Membranes", "requestedQuantity": 1}])
        assert client.delete(f"{API}/FactoryRequests/{request['id']}", headers=factory_headers).status_code == 200
        assert client.get(f"{API}/FactoryRequests/{request['id']}", headers=factory_headers).status_code == 404


class TestCustomerPurchases:
    def _purchase(self, client: TestClient, headers: dict, quantity: int):
        return client.post(f"{API}/customer-purchases", headers=headers, json={
            "customerName": "Nimali Silva",
            "branchId": "BR001",
            "branchName": "Colombo Branch",
            "items": [{"itemName": "RO Membranes", "quantity": quantity, "unitPrice": 4500}],
        })

    def test_purchase_decrements_branch_stock(
        self, client: TestClient, db_session: Session, branch_headers, branch_stock
    ):
        response = self._purchase(client, branch_headers, 3)
        assert response.status_code == 201
        purchase = response.json()["purchase"]
        assert purchase["purchaseNumber"].startswith("PUR-")
        assert purchase["totalAmount"] == 13500
        assert purchase["items"][0]["totalPrice"] == 13500
        assert purchase["customerId"] is None

        db_session.expire_all()
        assert db_session.get(BranchInventoryItem, branch_stock.id).quantity == 5

    def test_customer_purchase_is_linked(self, client: TestClient, customer_headers, customer_user, branch_stock):
        response = self._purchase(client, customer_headers, 1)
        assert response.status_code == 201
        assert response.json()["purchase"]["customerId"] == customer_user.id

    def test_insufficient_branch_stock(self, client: TestClient, db_session: Session, branch_headers, branch_stock):
        response = self._purchase(client, branch_headers, 20)
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Insufficient branch stock for purchase"
        assert body["insufficientItems"][0]["available"] == 8

        db_session.expire_all()
        assert db_session.get(BranchInventoryItem, branch_stock.id).quantity == 8

    def test_branch_history(self, client: TestClient, branch_headers, customer_headers, branch_stock):
        self._purchase(client, branch_headers, 1)
        self._purchase(client, branch_headers, 2)

        history = client.get(f"{API}/customer-purchases/branch/BR001", headers=branch_headers).json()
        assert history["count"] == 2

        assert client.get(f"{API}/customer-purchases/branch/BR001", headers=customer_headers).status_code == 403
