"""Tests for the factory main waste bin."""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from aquaflow.core.config import settings
from aquaflow.models.factory_waste import FactoryWasteBin, FactoryWasteEntry
from aquaflow.models.recycling import RecyclingRequest, RequestStatus

API = "/api/v1"
BIN = f"{API}/FactoryWasteBin"


def _delivery(weight: float, branch_id: str = "BR001", branch: str = "Colombo Branch", **extra) -> dict:
    body = {
        "sourceBranch": branch,
        "sourceBranchId": branch_id,
        "wasteWeight": weight,
        "wasteType": "Plastic",
        "collectionRequestId": f"COL-{branch_id}-{weight}",
    }
    body.update(extra)
    return body


def _add(client: TestClient, headers: dict, weight: float, **kwargs):
    return client.post(f"{BIN}/add-waste", headers=headers, json=_delivery(weight, **kwargs))


class TestFactoryBin:
    def test_bin_created_on_first_read(self, client: TestClient, factory_headers):
        response = client.get(BIN, headers=factory_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["bin"]["binCode"] == "FACTORY_MAIN_BIN"
        assert body["bin"]["capacity"] == 1000
        assert body["bin"]["currentLevel"] == 0
        assert body["bin"]["status"] == "Active"
        assert body["statistics"]["totalCollections"] == 0

    def test_single_bin(self, client: TestClient, db_session: Session, factory_headers):
        client.get(BIN, headers=factory_headers)
        client.get(f"{BIN}/statistics", headers=factory_headers)
        assert db_session.query(FactoryWasteBin).count() == 1

    def test_add_waste(self, client: TestClient, factory_headers):
        response = _add(client, factory_headers, 200)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Waste added to factory bin successfully"
        assert body["bin"]["currentLevel"] == 200
        assert body["bin"]["fillPercentage"] == 20
        assert body["bin"]["totalWasteCollected"] == 200
        assert body["statistics"]["wasteByType"] == {"Plastic": 200}
        assert body["statistics"]["wasteByBranch"] == {"Colombo Branch": 200}

        history = client.get(f"{BIN}/history", headers=factory_headers).json()["history"]
        assert history[0]["processedBy"] == "Factory Manager"
        assert history[0]["collectionRequestId"] == "COL-BR001-200"

    def test_processed_by_from_body(self, client: TestClient, factory_headers):
        _add(client, factory_headers, 5, processedBy="Night shift")
        history = client.get(f"{BIN}/history", headers=factory_headers).json()["history"]
        assert history[0]["processedBy"] == "Night shift"

    def test_missing_fields(self, client: TestClient, factory_headers):
        response = client.post(f"{BIN}/add-waste", headers=factory_headers, json={
            "sourceBranch": "Colombo Branch",
            "wasteWeight": 10,
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"

    def test_unknown_waste_type(self, client: TestClient, factory_headers):
        response = _add(client, factory_headers, 10, wasteType="Rubber")
        assert response.status_code == 400

    def test_overflow_refused(self, client: TestClient, db_session: Session, factory_headers, monkeypatch):
        monkeypatch.setattr(settings, "factory_bin_capacity", 50.0)
        assert _add(client, factory_headers, 40).status_code == 200

        response = _add(client, factory_headers, 20, branch_id="BR002", branch="Kandy Branch")
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Insufficient capacity. Available: 10 kg, Required: 20 kg"
        assert body["available"] == 10

        db_session.expire_all()
        factory_bin = db_session.query(FactoryWasteBin).one()
        assert factory_bin.current_level == 40
        assert db_session.query(FactoryWasteEntry).count() == 1

    def test_full_then_empty(self, client: TestClient, factory_headers, monkeypatch):
        monkeypatch.setattr(settings, "factory_bin_capacity", 50.0)
        full = _add(client, factory_headers, 50).json()["bin"]
        assert full["fillPercentage"] == 100
        assert full["status"] == "Full"

        response = client.put(f"{BIN}/empty", headers=factory_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Factory bin emptied successfully"
        assert body["bin"]["currentLevel"] == 0
        assert body["bin"]["status"] == "Active"
        assert body["bin"]["totalWasteCollected"] == 50
        assert body["statistics"]["totalWaste"] == 50

    def test_branch_manager_cannot_add(self, client: TestClient, branch_headers):
        assert _add(client, branch_headers, 10).status_code == 403

    def test_customer_cannot_read(self, client: TestClient, customer_headers):
        assert client.get(BIN, headers=customer_headers).status_code == 403


class TestFactoryBinHistory:
    def test_filters_and_pages(self, client: TestClient, factory_headers):
        _add(client, factory_headers, 10)
        _add(client, factory_headers, 20, wasteType="Glass")
        _add(client, factory_headers, 30, branch_id="BR002", branch="Kandy Branch")

        everything = client.get(f"{BIN}/history", headers=factory_headers).json()
        assert everything["totalCount"] == 3
        assert [e["wasteWeight"] for e in everything["history"]] == [30, 20, 10]

        colombo = client.get(f"{BIN}/history", headers=factory_headers, params={"branchId": "BR001"}).json()
        assert colombo["totalCount"] == 2

        glass = client.get(f"{BIN}/history", headers=factory_headers, params={"wasteType": "Glass"}).json()
        assert [e["wasteWeight"] for e in glass["history"]] == [20]

        paged = client.get(f"{BIN}/history", headers=factory_headers, params={"page": 2, "limit": 2}).json()
        assert paged["currentPage"] == 2
        assert paged["totalPages"] == 2
        assert [e["wasteWeight"] for e in paged["history"]] == [10]

    def test_date_range(self, client: TestClient, factory_headers):
        _add(client, factory_headers, 10)
        past = client.get(
            f"{BIN}/history", headers=factory_headers, params={"startDate": "2020-01-01", "endDate": "2020-01-31"}
        ).json()
        assert past["totalCount"] == 0
        assert past["totalPages"] == 0


class TestHistoricalMigration:
    def _request(self, db_session: Session, code: str, weight: float, status: RequestStatus):
        db_session.add(RecyclingRequest(
            request_code=code,
            customer_name="Walk-in Customer",
            branch_id="BR001",
            branch_name="Colombo Branch",
            waste_weight=weight,
            points_earned=int(weight),
            status=status,
        ))

    def test_migrates_once(self, client: TestClient, db_session: Session, factory_headers):
        self._request(db_session, "REC-20250101-000001", 12.5, RequestStatus.APPROVED)
        self._request(db_session, "REC-20250101-000002", 7.5, RequestStatus.COMPLETED)
        self._request(db_session, "REC-20250101-000003", 40, RequestStatus.PENDING)
        self._request(db_session, "REC-20250101-000004", 3, RequestStatus.REJECTED)
        db_session.commit()

        response = client.post(f"{BIN}/migrate-historical", headers=factory_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["migratedCount"] == 2
        assert body["totalWeight"] == 20
        assert body["bin"]["currentLevel"] == 20
        assert body["statistics"]["wasteByType"] == {"Mixed": 20}

        again = client.post(f"{BIN}/migrate-historical", headers=factory_headers).json()
        assert again["migratedCount"] == 0
        assert again["bin"]["currentLevel"] == 20

    def test_skips_what_does_not_fit(self, client: TestClient, db_session: Session, factory_headers, monkeypatch):
        monkeypatch.setattr(settings, "factory_bin_capacity", 15.0)
        self._request(db_session, "REC-20250101-000001", 10, RequestStatus.APPROVED)
        self._request(db_session, "REC-20250101-000002", 10, RequestStatus.APPROVED)
        db_session.commit()

        body = client.post(f"{BIN}/migrate-historical", headers=factory_headers).json()
        assert body["migratedCount"] == 1
        assert body["bin"]["currentLevel"] == 10

        history = client.get(f"{BIN}/history", headers=factory_headers).json()["history"]
        assert [e["processedBy"] for e in history] == ["Historical Migration"]
