"""
Authorization tests for PharmaPOS.

Verifies:
- Unauthenticated requests return 401
- Regular users are denied admin-only inventory mutations (403)
- Admins can perform them
- Login / logout / me round trip
"""

import pytest

PASSWORD = "Password123!"


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales/1"),
            ("POST", "/api/sales/1/cancel"),
            ("DELETE", "/api/sales/1"),
            ("GET", "/api/inventory"),
            ("GET", "/api/inventory/quantity"),
            ("POST", "/api/inventory/adjust"),
            ("PUT", "/api/inventory/levels"),
            ("DELETE", "/api/inventory"),
            ("GET", "/api/inventory/reconcile"),
            ("GET", "/api/movements"),
            ("GET", "/api/movements/1"),
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/sales", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"


# =============================================================================
# REGULAR USER DENIED ADMIN OPERATIONS - 403
# =============================================================================


class TestUserDeniedAdminOperations:
    def test_cannot_adjust_inventory(self, client, cashier_headers, stocked):
        resp = client.post("/api/inventory/adjust", headers=cashier_headers, json={
            "product_id": stocked["paracetamol"].id,
            "warehouse_id": stocked["warehouse"].id,
            "delta": 5,
        })
        assert resp.status_code == 403

    def test_cannot_set_levels(self, client, cashier_headers, stocked):
        resp = client.put("/api/inventory/levels", headers=cashier_headers, json={
            "product_id": stocked["paracetamol"].id,
            "warehouse_id": stocked["warehouse"].id,
            "quantity": 0,
        })
        assert resp.status_code == 403

    def test_cannot_delete_record(self, client, cashier_headers, stocked):
        resp = client.delete(
            f"/api/inventory?product_id={stocked['paracetamol'].id}&warehouse_id={stocked['warehouse'].id}",
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_can_read_inventory(self, client, cashier_headers, stocked):
        resp = client.get("/api/inventory", headers=cashier_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["items"]) == 2


# =============================================================================
# ADMIN CAN PERFORM PRIVILEGED OPERATIONS
# =============================================================================


class TestAdminAccess:
    def test_can_adjust_inventory(self, client, admin_headers, stocked):
        resp = client.post("/api/inventory/adjust", headers=admin_headers, json={
            "product_id": stocked["paracetamol"].id,
            "warehouse_id": stocked["warehouse"].id,
            "delta": 5,
            "reason": "Compra",
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["new_quantity"] == 15
        assert body["movement"]["movement_type"] == "Entrada"


# =============================================================================
# LOGIN / LOGOUT
# =============================================================================


class TestSessions:
    def test_login_me_logout(self, client, cashier):
        resp = client.post("/api/auth/login", json={"email": cashier.email, "password": PASSWORD})
        assert resp.status_code == 200
        token = resp.get_json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["user"]["username"] == "cajero"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_login_by_username(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.get_json()["role"] == "admin"

    def test_wrong_password(self, client, cashier):
        resp = client.post("/api/auth/login", json={"email": cashier.email, "password": "Wrong123!"})
        assert resp.status_code == 401

    def test_missing_credentials(self, client, db_session):
        assert client.post("/api/auth/login", json={}).status_code == 400

    def test_deactivated_user_token_rejected(self, client, cashier, cashier_headers, db_session):
        cashier.is_active = False
        db_session.commit()
        assert client.get("/api/auth/me", headers=cashier_headers).status_code == 401


def test_health(client, db_session):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["database"]["status"] == "healthy"
