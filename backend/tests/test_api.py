"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Role gates (OBJECT_USER read-only, ADMIN-only deletes and user admin)
- Operation and edit endpoints report transitions and audit outcomes
- Location deletion conflicts, reports and health
"""

import pytest

from conftest import PASSWORD, auth_headers, get_auth_token


# =============================================================================
# AUTH
# =============================================================================


class TestAuth:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/cartridges"),
            ("POST", "/api/cartridges"),
            ("GET", "/api/operations"),
            ("POST", "/api/operations"),
            ("GET", "/api/locations"),
            ("GET", "/api/users"),
            ("GET", "/api/reports/summary"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_login_me_logout(self, client, manager_user):
        token = get_auth_token(client, "manager")
        assert token

        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.json["user"]["role"] == "WAREHOUSE_MANAGER"

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_bad_password(self, client, manager_user):
        resp = client.post("/api/auth/login", json={"username": "manager", "password": "wrong-pass1"})
        assert resp.status_code == 401

    def test_register_creates_object_user(self, client, db_session):
        resp = client.post("/api/auth/register", json={"username": "newbie", "password": "abcdefg1"})
        assert resp.status_code == 201
        assert resp.json["user"]["role"] == "OBJECT_USER"

    def test_register_rejects_weak_password(self, client, db_session):
        resp = client.post("/api/auth/register", json={"username": "newbie", "password": "short"})
        assert resp.status_code == 400

    def test_disabled_user_cannot_login(self, client, admin_headers, object_user):
        resp = client.patch(f"/api/users/{object_user.id}/enabled", json={"is_enabled": False}, headers=admin_headers)
        assert resp.status_code == 200
        assert get_auth_token(client, "clerk", PASSWORD) is None


# =============================================================================
# CARTRIDGES
# =============================================================================


class TestCartridgeRoutes:

    def test_create_logs_receipt(self, client, manager_headers, warehouse):
        resp = client.post(
            "/api/cartridges",
            json={"model": "Brother TN-2420", "serial_number": "BR-1", "location_id": warehouse.id},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        cartridge = resp.json["cartridge"]
        assert cartridge["status"] == "IN_STOCK"
        assert cartridge["current_location_name"] == "Warehouse"

        ops = client.get(f"/api/operations?cartridge_id={cartridge['id']}", headers=manager_headers).json
        assert ops["total"] == 1
        assert ops["items"][0]["type"] == "RECEIPT"

    def test_create_rejects_status(self, client, manager_headers):
        resp = client.post("/api/cartridges", json={"model": "X", "status": "IN_USE"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_create_rejects_unknown_field(self, client, manager_headers):
        resp = client.post("/api/cartridges", json={"model": "X", "owner": "me"}, headers=manager_headers)
        assert resp.status_code == 400

    def test_object_user_is_read_only(self, client, object_user_headers, cartridge):
        assert client.get("/api/cartridges", headers=object_user_headers).status_code == 200
        assert client.post("/api/cartridges", json={"model": "X"}, headers=object_user_headers).status_code == 403
        assert client.put(
            f"/api/cartridges/{cartridge.id}", json={"color": "cyan"}, headers=object_user_headers
        ).status_code == 403

    def test_manager_cannot_delete(self, client, manager_headers, cartridge):
        assert client.delete(f"/api/cartridges/{cartridge.id}", headers=manager_headers).status_code == 403

    def test_edit_reports_inferred_operation(self, client, manager_headers, cartridge, office):
        resp = client.put(
            f"/api/cartridges/{cartridge.id}",
            json={"status": "IN_USE", "location_id": office.id},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["cartridge"]["status"] == "IN_USE"
        assert resp.json["audit"]["state"] == "RECORDED"
        assert resp.json["audit"]["operation"]["type"] == "ISSUE"
        assert resp.json["audit"]["operation"]["source"] == "INFERRED"

    def test_edit_rejects_location_for_refilling(self, client, manager_headers, cartridge, office):
        resp = client.put(
            f"/api/cartridges/{cartridge.id}",
            json={"status": "REFILLING", "location_id": office.id},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("status", [{"x": 1}, ["IN_USE"], 3])
    def test_edit_rejects_non_string_status(self, client, manager_headers, cartridge, status):
        resp = client.put(
            f"/api/cartridges/{cartridge.id}", json={"status": status}, headers=manager_headers
        )
        assert resp.status_code == 400
        assert "status" in resp.json["error"]

        resp = client.get(f"/api/cartridges/{cartridge.id}", headers=manager_headers)
        assert resp.json["cartridge"]["status"] == "IN_STOCK"

    def test_admin_delete_keeps_history(self, client, admin_headers, cartridge):
        cartridge_id = cartridge.id
        resp = client.delete(f"/api/cartridges/{cartridge_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["operation"]["type"] == "DISPOSAL"

        assert client.get(f"/api/cartridges/{cartridge_id}", headers=admin_headers).status_code == 404
        history = client.get(f"/api/operations?cartridge_id={cartridge_id}", headers=admin_headers).json
        assert [item["type"] for item in history["items"]] == ["DISPOSAL", "RECEIPT"]

    def test_search_and_lookups(self, client, object_user_headers, cartridge, warehouse):
        assert client.get("/api/cartridges/search?q=85a", headers=object_user_headers).json["total"] == 1
        assert client.get("/api/cartridges/serial/SN-0001", headers=object_user_headers).status_code == 200
        assert client.get("/api/cartridges/serial/NOPE", headers=object_user_headers).status_code == 404
        assert len(client.get("/api/cartridges/status/IN_STOCK", headers=object_user_headers).json["items"]) == 1
        assert client.get("/api/cartridges/status/LOST", headers=object_user_headers).status_code == 400
        at = client.get(f"/api/cartridges/location/{warehouse.id}", headers=object_user_headers).json
        assert len(at["items"]) == 1
        count = client.get(
            f"/api/cartridges/count/location/{warehouse.id}/status/IN_STOCK", headers=object_user_headers
        ).json
        assert count["count"] == 1


# =============================================================================
# OPERATIONS
# =============================================================================


class TestOperationRoutes:

    def test_issue_then_repeat_conflicts(self, client, manager_headers, cartridge, office):
        body = {"type": "ISSUE", "cartridge_id": cartridge.id, "location_id": office.id}

        first = client.post("/api/operations", json=body, headers=manager_headers)
        assert first.status_code == 201
        assert first.json["operation"]["location_id"] == office.id
        assert first.json["operation"]["performed_by_username"] == "manager"

        second = client.post("/api/operations", json=body, headers=manager_headers)
        assert second.status_code == 409
        assert second.json["current_status"] == "IN_USE"
        assert second.json["reason"] == "cartridge not in stock"
        assert second.json["cartridge_id"] == cartridge.id

    def test_validation_and_not_found(self, client, manager_headers, cartridge):
        assert client.post(
            "/api/operations", json={"type": "ISSUE"}, headers=manager_headers
        ).status_code == 400
        assert client.post(
            "/api/operations", json={"type": "ISSUE", "cartridge_id": cartridge.id, "count": 0},
            headers=manager_headers,
        ).status_code == 400
        assert client.post(
            "/api/operations", json={"type": "ISSUE", "cartridge_id": 9999}, headers=manager_headers
        ).status_code == 404

    @pytest.mark.parametrize("body", [
        {"type": "ISSUE", "notes": {"a": 1}},
        {"type": "ISSUE", "notes": ["first shift"]},
        {"type": "ISSUE", "notes": "x" * 501},
        {"type": {"name": "ISSUE"}},
    ])
    def test_malformed_text_fields_rejected(self, client, manager_headers, cartridge, office, body):
        resp = client.post(
            "/api/operations",
            json={**body, "cartridge_id": cartridge.id, "location_id": office.id},
            headers=manager_headers,
        )
        assert resp.status_code == 400

        ops = client.get(f"/api/operations?cartridge_id={cartridge.id}", headers=manager_headers)
        assert ops.json["total"] == 1

    def test_object_user_cannot_perform(self, client, object_user_headers, cartridge):
        resp = client.post(
            "/api/operations", json={"type": "ISSUE", "cartridge_id": cartridge.id}, headers=object_user_headers
        )
        assert resp.status_code == 403

    def test_queries(self, client, object_user_headers, cartridge):
        listing = client.get("/api/operations?type=RECEIPT&page=1&per_page=10", headers=object_user_headers).json
        assert listing["total"] == 1
        assert listing["page"] == 1

        op_id = listing["items"][0]["id"]
        assert client.get(f"/api/operations/{op_id}", headers=object_user_headers).status_code == 200
        assert client.get("/api/operations/999", headers=object_user_headers).status_code == 404

        assert client.get("/api/operations/type/RECEIPT", headers=object_user_headers).json["total"] == 1
        count = client.get(
            "/api/operations/count/RECEIPT?start=2000-01-01&end=2999-01-01", headers=object_user_headers
        ).json
        assert count["count"] == 1
        assert client.get(
            "/api/operations?start=not-a-date", headers=object_user_headers
        ).status_code == 400


# =============================================================================
# LOCATIONS
# =============================================================================


class TestLocationRoutes:

    def test_crud_and_delete_conflict(self, client, admin_headers, cartridge, warehouse):
        created = client.post(
            "/api/locations", json={"name": "Lab", "address": "9 Science Way"}, headers=admin_headers
        )
        assert created.status_code == 201
        lab_id = created.json["location"]["id"]

        dup = client.post("/api/locations", json={"name": "Lab", "address": "elsewhere"}, headers=admin_headers)
        assert dup.status_code == 409

        resp = client.delete(f"/api/locations/{warehouse.id}", headers=admin_headers)
        assert resp.status_code == 409
        assert "1 cartridge" in resp.json["error"]

        assert client.delete(f"/api/locations/{lab_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/locations/{lab_id}", headers=admin_headers).status_code == 404

    def test_active_flag_and_search(self, client, manager_headers, warehouse, office):
        resp = client.patch(f"/api/locations/{office.id}/active", json={"is_active": False}, headers=manager_headers)
        assert resp.status_code == 200

        active = client.get("/api/locations/active", headers=manager_headers).json["items"]
        assert [loc["name"] for loc in active] == ["Warehouse"]

        found = client.get("/api/locations/search?contact_person=ann", headers=manager_headers).json["items"]
        assert [loc["name"] for loc in found] == ["Office 12"]
        assert client.get("/api/locations/name/Warehouse", headers=manager_headers).status_code == 200

    def test_manager_cannot_delete(self, client, manager_headers, office):
        assert client.delete(f"/api/locations/{office.id}", headers=manager_headers).status_code == 403


# =============================================================================
# USERS, REPORTS, HEALTH
# =============================================================================


class TestUserRoutes:

    def test_admin_only(self, client, manager_headers):
        assert client.get("/api/users", headers=manager_headers).status_code == 403

    def test_create_list_delete(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"username": "wm2", "password": "Stock1234", "role": "WAREHOUSE_MANAGER"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        user_id = resp.json["user"]["id"]

        managers = client.get("/api/users?role=WAREHOUSE_MANAGER", headers=admin_headers).json["items"]
        assert [u["username"] for u in managers] == ["wm2"]

        assert client.delete(f"/api/users/{user_id}", headers=admin_headers).status_code == 200

    def test_user_with_history_cannot_be_deleted(self, client, admin_headers, cartridge, manager_user):
        resp = client.delete(f"/api/users/{manager_user.id}", headers=admin_headers)
        assert resp.status_code == 409


class TestReportsAndHealth:

    def test_summary(self, client, object_user_headers, cartridge, warehouse):
        summary = client.get("/api/reports/summary", headers=object_user_headers).json
        assert summary["cartridges_by_status"]["IN_STOCK"] == 1
        assert summary["cartridges_by_status"]["DISPOSED"] == 0
        assert summary["operations_by_type"]["RECEIPT"] == 1

        by_location = {row["location_name"]: row for row in summary["locations"]}
        assert by_location["Warehouse"]["counts"]["IN_STOCK"] == 1

    def test_summary_rejects_inverted_range(self, client, object_user_headers):
        resp = client.get(
            "/api/reports/summary?start=2026-02-01&end=2026-01-01", headers=object_user_headers
        )
        assert resp.status_code == 400

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
