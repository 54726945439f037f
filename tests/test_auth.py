"""Tests for accounts, login and role checks."""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from aquaflow.models.operations import AuditLogEntry

API = "/api/v1"


class TestRegistration:
    def test_register_customer(self, client: TestClient):
        response = client.post(f"{API}/users/register", json={
            "email": "new@example.com",
            "password": "secret123",
            "name": "New Customer",
        })
        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["user"]["role"] == "Customer"
        assert data["user"]["recyclingPoints"] == 0
        assert "passwordHash" not in data["user"]
        assert data["token"]

    def test_register_staff_role_forbidden(self, client: TestClient):
        response = client.post(f"{API}/users/register", json={
            "email": "sneaky@example.com",
            "password": "secret123",
            "name": "Sneaky",
            "role": "Admin",
        })
        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_register_duplicate_email(self, client: TestClient, customer_user):
        response = client.post(f"{API}/users/register", json={
            "email": customer_user.email,
            "password": "secret123",
            "name": "Duplicate",
        })
        assert response.status_code == 400
        assert "already exists" in response.json()["message"]

    def test_register_validation_error_envelope(self, client: TestClient):
        response = client.post(f"{API}/users/register", json={"email": "not-an-email"})
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Validation failed"
        assert len(data["errors"]) >= 1


class TestLogin:
    def test_login_success(self, client: TestClient, customer_user):
        response = client.post(f"{API}/users/login", json={
            "email": customer_user.email,
            "password": "testpass123",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["token"]
        assert data["user"]["email"] == customer_user.email

    def test_login_wrong_password(self, client: TestClient, customer_user):
        response = client.post(f"{API}/users/login", json={
            "email": customer_user.email,
            "password": "wrong",
        })
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    def test_login_inactive_user(self, client: TestClient, db_session: Session, customer_user):
        customer_user.is_active = False
        db_session.commit()
        response = client.post(f"{API}/users/login", json={
            "email": customer_user.email,
            "password": "testpass123",
        })
        assert response.status_code == 401

    def test_me(self, client: TestClient, customer_headers, customer_user):
        response = client.get(f"{API}/users/me", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["user"]["id"] == customer_user.id

    def test_missing_token(self, client: TestClient):
        response = client.get(f"{API}/users/me")
        assert response.status_code == 401
        assert response.json()["message"] == "Access token required"

    def test_garbage_token(self, client: TestClient):
        response = client.get(f"{API}/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestRoleChecks:
    def test_admin_lists_users(self, client: TestClient, admin_headers, customer_user):
        response = client.get(f"{API}/users", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_customer_cannot_list_users(self, client: TestClient, customer_headers):
        response = client.get(f"{API}/users", headers=customer_headers)
        assert response.status_code == 403

    def test_admin_creates_driver_account(self, client: TestClient, admin_headers):
        response = client.post(f"{API}/users", headers=admin_headers, json={
            "email": "driver2@aquaflow.lk",
            "password": "secret123",
            "name": "Driver Two",
            "role": "Driver",
            "branchId": "BR001",
            "salary": 40000,
        })
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "Driver"

    def test_admin_cannot_delete_self(self, client: TestClient, admin_headers, admin_user):
        response = client.delete(f"{API}/users/{admin_user.id}", headers=admin_headers)
        assert response.status_code == 400

    def test_recycling_points_self_only(self, client: TestClient, customer_headers, customer_user, admin_user):
        own = client.get(f"{API}/users/{customer_user.id}/recycling-points", headers=customer_headers)
        assert own.status_code == 200
        assert own.json()["recyclingPoints"] == 0

        other = client.get(f"{API}/users/{admin_user.id}/recycling-points", headers=customer_headers)
        assert other.status_code == 403

    def test_branch_driver_employees(self, client: TestClient, branch_headers, driver_user):
        response = client.get(f"{API}/employees/drivers/branch/BR001", headers=branch_headers)
        assert response.status_code == 200
        drivers = response.json()["drivers"]
        assert [d["id"] for d in drivers] == [driver_user.id]


class TestAuditTrail:
    def test_write_request_is_audited(self, client: TestClient, db_session: Session, admin_headers, admin_user):
        response = client.post(f"{API}/branches", headers=admin_headers, json={
            "code": "BR002",
            "name": "Kandy Branch",
            "location": "Kandy",
        })
        assert response.status_code == 201

        db_session.expire_all()
        entries = db_session.query(AuditLogEntry).filter(AuditLogEntry.action == "create").all()
        assert len(entries) == 1
        assert entries[0].entity_type == "branches"
        assert entries[0].user_id == admin_user.id

    def test_failed_login_is_audited(self, client: TestClient, db_session: Session, customer_user):
        client.post(f"{API}/users/login", json={"email": customer_user.email, "password": "wrong"})
        db_session.expire_all()
        entry = db_session.query(AuditLogEntry).filter(AuditLogEntry.action == "failed_login").first()
        assert entry is not None
        assert entry.user_name == customer_user.email
