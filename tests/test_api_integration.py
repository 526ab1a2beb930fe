"""
Integration tests for the Banking Panel API
Tests end-to-end workflows using FastAPI TestClient
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from banking_panel.api import create_app
from banking_panel.api.auth import PanelSystem
from banking_panel.config import PanelConfig
from banking_panel.storage import BackendError

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass-123"


def make_config(**overrides):
    settings = {
        "backend_mode": "memory",
        "jwt_secret": "test-secret",
        "bootstrap_admin_email": ADMIN_EMAIL,
        "bootstrap_admin_password": ADMIN_PASSWORD,
        "bootstrap_admin_name": "Head Office",
        "log_level": "WARNING",
    }
    settings.update(overrides)
    return PanelConfig(**settings)


@pytest.fixture
def system():
    """In-memory panel system with a seeded administrator"""
    return PanelSystem(make_config())


@pytest.fixture
def client(system):
    return TestClient(create_app(system))


def login(client, email, password):
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


def create_staff(client, admin_headers, email, name="Ravi Kumar", password="staff-pass-1"):
    r = client.post("/api/create-staff", headers=admin_headers,
                    json={"email": email, "password": password, "fullName": name})
    assert r.status_code == 200, r.text
    return r.json()["userId"]


@pytest.fixture
def staff_headers(client, admin_headers):
    create_staff(client, admin_headers, "ravi@example.com")
    return login(client, "ravi@example.com", "staff-pass-1")


BANK_DETAIL = {
    "ac_holder_name": "Ravi Kumar",
    "bank_name": "State Bank",
    "acc_number": "1234567890",
    "mobile_number": "9876543210",
    "merchant_name": "googlepay",
}


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        data = r.json()
        assert data["name"] == "Banking Panel API"
        assert data["endpoints"]["create_staff"] == "/api/create-staff"


class TestSession:
    """Test sign-in and the current profile"""

    def test_login_returns_admin_view(self, client):
        r = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert r.status_code == 200
        data = r.json()
        assert data["token_type"] == "bearer"
        assert data["profile"]["role"] == "admin"
        assert data["view"] == "admin"

    def test_login_wrong_password(self, client):
        r = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
        assert r.status_code == 401
        assert r.json() == {"error": "Invalid login credentials"}

    def test_me(self, client, admin_headers):
        r = client.get("/auth/me", headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["profile"]["full_name"] == "Head Office"

    def test_me_requires_token(self, client):
        r = client.get("/auth/me")
        assert r.status_code == 401
        assert r.json() == {"error": "Not authenticated"}

    def test_me_rejects_garbage_token(self, client):
        r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert r.status_code == 401
        assert r.json() == {"error": "Invalid token"}


class TestCreateStaff:
    """End-to-end staff provisioning tests"""

    def test_create_staff(self, client, system, admin_headers):
        r = client.post("/api/create-staff", headers=admin_headers, json={
            "email": "ravi@example.com", "password": "staff-pass-1", "fullName": "Ravi Kumar"
        })

        assert r.status_code == 200
        data = r.json()
        assert data["success"] is True
        assert data["message"] == "Staff member created successfully"
        profile = system.profile_manager.get_by_user_id(data["userId"])
        assert profile.role.value == "staff"
        assert profile.full_name == "Ravi Kumar"

    def test_new_staff_can_sign_in(self, client, admin_headers):
        create_staff(client, admin_headers, "ravi@example.com")
        r = client.post("/auth/login", json={"email": "ravi@example.com", "password": "staff-pass-1"})
        assert r.status_code == 200
        assert r.json()["view"] == "staff"

    @pytest.mark.parametrize("name_key", ["fullName", "full_name", "name"])
    def test_name_field_variants(self, client, system, admin_headers, name_key):
        r = client.post("/api/create-staff", headers=admin_headers, json={
            "email": "ravi@example.com", "password": "staff-pass-1", name_key: "Ravi Kumar"
        })
        assert r.status_code == 200
        assert system.profile_manager.get_by_user_id(r.json()["userId"]).full_name == "Ravi Kumar"

    def test_missing_field(self, client, system, admin_headers):
        r = client.post("/api/create-staff", headers=admin_headers, json={
            "email": "ravi@example.com", "password": "staff-pass-1"
        })

        assert r.status_code == 400
        assert r.json() == {"error": "Email, password, and full name are required"}
        assert len(system.identity_admin.list_users()) == 1
        assert system.profile_manager.list_staff() == []

    def test_duplicate_email_reports_upstream_message(self, client, admin_headers):
        create_staff(client, admin_headers, "ravi@example.com")
        r = client.post("/api/create-staff", headers=admin_headers, json={
            "email": "ravi@example.com", "password": "other-pass-1", "fullName": "Ravi Two"
        })
        assert r.status_code == 400
        assert "already been registered" in r.json()["error"]

    def test_profile_failure_rolls_back_identity(self, client, system, admin_headers):
        with patch.object(system.profile_manager, "create_profile",
                          side_effect=BackendError("insert failed")):
            r = client.post("/api/create-staff", headers=admin_headers, json={
                "email": "ravi@example.com", "password": "staff-pass-1", "fullName": "Ravi"
            })

        assert r.status_code == 500
        assert r.json() == {"error": "Profile creation failed"}
        assert system.identity_admin.get_user_by_email("ravi@example.com") is None

    def test_get_not_allowed(self, client):
        r = client.get("/api/create-staff")
        assert r.status_code == 405
        assert r.json() == {"error": "Method not allowed"}

    def test_requires_authentication(self, client):
        r = client.post("/api/create-staff", json={
            "email": "ravi@example.com", "password": "staff-pass-1", "fullName": "Ravi"
        })
        assert r.status_code == 401

    def test_staff_cannot_provision(self, client, staff_headers):
        r = client.post("/api/create-staff", headers=staff_headers, json={
            "email": "meena@example.com", "password": "staff-pass-2", "fullName": "Meena"
        })
        assert r.status_code == 403
        assert r.json() == {"error": "Administrator access required"}

    def test_open_provisioning_when_admin_check_disabled(self):
        system = PanelSystem(make_config(require_admin_for_provisioning=False))
        client = TestClient(create_app(system))

        r = client.post("/api/create-staff", json={
            "email": "ravi@example.com", "password": "staff-pass-1", "fullName": "Ravi"
        })
        assert r.status_code == 200

    def test_trigger_mode(self):
        system = PanelSystem(make_config(profile_trigger_enabled=True, profile_trigger_delay_ms=0))
        client = TestClient(create_app(system))
        headers = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

        user_id = create_staff(client, headers, "ravi@example.com", name="Ravi")

        profile = system.profile_manager.get_by_user_id(user_id)
        assert profile.full_name == "Ravi"
        assert profile.role.value == "staff"
        assert len(system.profile_manager.list_staff()) == 1


class TestStaffBankDetails:
    """End-to-end bank detail management for staff"""

    def test_create_and_list(self, client, staff_headers):
        r = client.post("/bank-details", headers=staff_headers, json={
            **BANK_DETAIL, "status": "inactive", "freeze_reason": "Chargeback",
            "freeze_balance": "1500.75"
        })

        assert r.status_code == 201
        data = r.json()
        assert data["bank_detail"]["merchant_display"] == "Google Pay"
        assert data["bank_detail"]["freeze_balance"] == "1500.75"
        assert len(data["bank_details"]) == 1
        assert data["summary"]["inactive_balance"] == "1500.75"

        r = client.get("/bank-details", headers=staff_headers)
        assert r.status_code == 200
        assert len(r.json()["bank_details"]) == 1

    def test_validation_errors_are_400(self, client, staff_headers):
        body = dict(BANK_DETAIL)
        del body["bank_name"]
        r = client.post("/bank-details", headers=staff_headers, json=body)
        assert r.status_code == 400
        assert "bank_name" in r.json()["error"]

    def test_negative_balance_rejected(self, client, staff_headers):
        r = client.post("/bank-details", headers=staff_headers,
                        json={**BANK_DETAIL, "freeze_balance": "-5"})
        assert r.status_code == 400
        assert r.json() == {"error": "Freeze balance cannot be negative"}

    def test_unknown_merchant_rejected(self, client, staff_headers):
        r = client.post("/bank-details", headers=staff_headers,
                        json={**BANK_DETAIL, "merchant_name": "paytm"})
        assert r.status_code == 400

    def test_update(self, client, staff_headers):
        detail_id = client.post("/bank-details", headers=staff_headers,
                                json=BANK_DETAIL).json()["bank_detail"]["id"]

        r = client.put(f"/bank-details/{detail_id}", headers=staff_headers,
                       json={"status": "inactive", "freeze_reason": "Hold", "freeze_balance": "99"})

        assert r.status_code == 200
        detail = r.json()["bank_detail"]
        assert detail["status"] == "inactive"
        assert detail["freeze_reason"] == "Hold"
        assert detail["bank_name"] == "State Bank"
        assert r.json()["summary"]["inactive_balance"] == "99"

    def test_delete_requires_confirmation(self, client, staff_headers):
        detail_id = client.post("/bank-details", headers=staff_headers,
                                json=BANK_DETAIL).json()["bank_detail"]["id"]

        r = client.delete(f"/bank-details/{detail_id}", headers=staff_headers)
        assert r.status_code == 400
        assert r.json() == {"error": "Deletion must be confirmed"}

        r = client.delete(f"/bank-details/{detail_id}?confirm=true", headers=staff_headers)
        assert r.status_code == 200
        assert r.json()["bank_details"] == []

    def test_other_staff_records_untouched(self, client, admin_headers, staff_headers):
        create_staff(client, admin_headers, "meena@example.com", name="Meena", password="staff-pass-2")
        meena_headers = login(client, "meena@example.com", "staff-pass-2")

        ravi_detail = client.post("/bank-details", headers=staff_headers,
                                  json=BANK_DETAIL).json()["bank_detail"]["id"]
        meena_detail = client.post("/bank-details", headers=meena_headers,
                                   json=BANK_DETAIL).json()["bank_detail"]["id"]

        assert client.delete(f"/bank-details/{ravi_detail}?confirm=true",
                             headers=meena_headers).status_code == 404
        assert client.put(f"/bank-details/{ravi_detail}", headers=meena_headers,
                          json={"bank_name": "Hijack"}).status_code == 404
        assert client.get(f"/bank-details/{ravi_detail}", headers=meena_headers).status_code == 404

        assert client.delete(f"/bank-details/{ravi_detail}?confirm=true",
                             headers=staff_headers).status_code == 200
        remaining = client.get("/bank-details", headers=meena_headers).json()["bank_details"]
        assert [d["id"] for d in remaining] == [meena_detail]

    def test_admin_cannot_use_staff_endpoints(self, client, admin_headers):
        r = client.get("/bank-details", headers=admin_headers)
        assert r.status_code == 403


class TestAdminViews:
    """End-to-end admin dashboard tests"""

    def test_staff_cannot_use_admin_endpoints(self, client, staff_headers):
        assert client.get("/admin/staff", headers=staff_headers).status_code == 403
        assert client.get("/admin/bank-details", headers=staff_headers).status_code == 403

    def test_admin_sees_all_details_with_summary(self, client, admin_headers, staff_headers):
        create_staff(client, admin_headers, "meena@example.com", name="Meena", password="staff-pass-2")
        meena_headers = login(client, "meena@example.com", "staff-pass-2")

        client.post("/bank-details", headers=staff_headers,
                    json={**BANK_DETAIL, "freeze_balance": "100"})
        client.post("/bank-details", headers=meena_headers,
                    json={**BANK_DETAIL, "status": "inactive", "freeze_balance": "40"})

        staff = client.get("/admin/staff", headers=admin_headers).json()["staff"]
        assert {p["full_name"] for p in staff} == {"Ravi Kumar", "Meena"}

        data = client.get("/admin/bank-details", headers=admin_headers).json()
        assert len(data["bank_details"]) == 2
        assert data["summary"] == {
            "total_balance": "140",
            "active_balance": "100",
            "inactive_balance": "40",
            "active_count": 1,
            "inactive_count": 1,
            "total_count": 2,
        }
        assert {d["profiles"]["full_name"] for d in data["bank_details"]} == {"Ravi Kumar", "Meena"}

        meena_id = next(p["id"] for p in staff if p["full_name"] == "Meena")
        filtered = client.get(f"/admin/bank-details?staff_id={meena_id}", headers=admin_headers).json()
        assert [d["staff_id"] for d in filtered["bank_details"]] == [meena_id]

        summary = client.get("/admin/summary", headers=admin_headers).json()
        assert [s["full_name"] for s in summary["by_staff"]] == ["Ravi Kumar", "Meena"]

    def test_dashboard_selects_view_by_role(self, client, admin_headers, staff_headers):
        admin_view = client.get("/dashboard", headers=admin_headers).json()
        staff_view = client.get("/dashboard", headers=staff_headers).json()

        assert admin_view["view"] == "admin"
        assert "staff" in admin_view
        assert staff_view["view"] == "staff"
        assert "staff" not in staff_view


class TestUnknownRole:
    """Test that a profile with an unrecognised role gets the staff view"""

    def test_dashboard_falls_back_to_staff_view(self, client, system):
        identity = system.identity_admin.create_user("manager@example.com", "manager-pass-1")
        system.store.insert("profiles", {
            "user_id": identity.id,
            "full_name": "Regional Manager",
            "role": "manager",
            "status": "active",
        })
        headers = login(client, "manager@example.com", "manager-pass-1")

        r = client.get("/dashboard", headers=headers)
        assert r.status_code == 200
        assert r.json()["view"] == "staff"

        r = client.get("/auth/me", headers=headers)
        assert r.status_code == 200
        assert r.json()["profile"]["role"] == "staff"
