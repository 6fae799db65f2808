"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Staff can read but not mutate (403)
- Typed errors map to {"error": {"code", "message", "details"}}
- The sale and stock flows end to end
"""

import pytest

from stockroom.errors import AuthorizationError
from stockroom.extensions import db
from stockroom.services import authorization

from conftest import TEST_PASSWORD, auth_headers, get_auth_token


# =============================================================================
# AUTHENTICATION
# =============================================================================


class TestAuth:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/warehouses"),
            ("GET", "/api/categories"),
            ("GET", "/api/stock"),
            ("POST", "/api/sales"),
            ("GET", "/api/reports/dashboard"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["error"]["code"] == "UNAUTHORIZED"

    def test_login_me_logout(self, client, admin_user):
        token = get_auth_token(client, "admin", TEST_PASSWORD)
        assert token

        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["user"]["role"] == "admin"

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_bad_password(self, client, admin_user):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "wrong-pass1"})
        assert resp.status_code == 401

    def test_bad_token(self, client, db_session):
        resp = client.get("/api/products", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# STAFF IS READ-ONLY (403)
# =============================================================================


class TestStaffDeniedMutations:

    def test_can_read(self, client, staff_headers, stocked):
        assert client.get("/api/products", headers=staff_headers).status_code == 200
        assert client.get("/api/stock", headers=staff_headers).status_code == 200
        assert client.get("/api/reports/valuation", headers=staff_headers).status_code == 200

    def test_cannot_create_product(self, client, staff_headers, db_session):
        resp = client.post("/api/products", json={"name": "x", "purchase_price_cents": 1}, headers=staff_headers)
        assert resp.status_code == 403
        assert resp.json["error"]["code"] == "FORBIDDEN"

    def test_cannot_record_sale(self, client, staff_headers, stocked):
        product_id, warehouse_id = stocked
        resp = client.post(
            "/api/sales",
            json={"product_id": product_id, "warehouse_id": warehouse_id,
                  "transaction_type": "retail", "quantity": 1},
            headers=staff_headers,
        )
        assert resp.status_code == 403

    def test_cannot_delete_warehouse(self, client, staff_headers, warehouse):
        resp = client.delete(f"/api/warehouses/{warehouse.id}", headers=staff_headers)
        assert resp.status_code == 403

    def test_cannot_adjust_stock(self, client, staff_headers, stocked):
        product_id, warehouse_id = stocked
        resp = client.put(
            f"/api/stock/{product_id}/{warehouse_id}/on-hand",
            json={"quantity_on_hand": 0},
            headers=staff_headers,
        )
        assert resp.status_code == 403


# =============================================================================
# ADMIN FLOWS AND ERROR BODIES
# =============================================================================


class TestAdminFlows:

    def test_create_product_with_stock(self, client, admin_headers, category, warehouse):
        resp = client.post(
            "/api/products",
            json={
                "name": "Power bank",
                "purchase_price_cents": 1500,
                "retail_price_cents": 2999,
                "category_id": category.id,
                "warehouse_id": warehouse.id,
                "initial_on_hand": 8,
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201
        product_id = resp.json["id"]

        entry = client.get(f"/api/stock/{product_id}/{warehouse.id}", headers=admin_headers)
        assert entry.json["quantity_on_hand"] == 8

    def test_create_product_with_string_zero_quantity(self, client, admin_headers, db_session):
        resp = client.post(
            "/api/products",
            json={"name": "Lanyard", "purchase_price_cents": 120, "initial_on_hand": "0"},
            headers=admin_headers,
        )
        assert resp.status_code == 201

    def test_rejects_unknown_field(self, client, admin_headers, db_session):
        resp = client.post(
            "/api/products",
            json={"name": "x", "purchase_price_cents": 1, "sku": "nope"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"]["code"] == "VALIDATION_ERROR"

    def test_record_sale(self, client, admin_headers, stocked):
        product_id, warehouse_id = stocked
        resp = client.post(
            "/api/sales",
            json={"product_id": product_id, "warehouse_id": warehouse_id,
                  "transaction_type": "retail", "quantity": 30},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["total_amount_cents"] == 30000

        entry = client.get(f"/api/stock/{product_id}/{warehouse_id}", headers=admin_headers)
        assert entry.json["quantity_on_hand"] == 70

        listed = client.get(f"/api/sales?product_id={product_id}", headers=admin_headers)
        assert [t["id"] for t in listed.json["items"]] == [resp.json["id"]]

    def test_insufficient_stock_body(self, client, admin_headers, stocked):
        product_id, warehouse_id = stocked
        resp = client.post(
            "/api/sales",
            json={"product_id": product_id, "warehouse_id": warehouse_id,
                  "transaction_type": "retail", "quantity": 150},
            headers=admin_headers,
        )
        assert resp.status_code == 409
        err = resp.json["error"]
        assert err["code"] == "INSUFFICIENT_STOCK"
        assert err["details"]["requested"] == 150
        assert err["details"]["available"] == 100
        assert err["details"]["shortfall"] == 50
        assert "short by 50" in err["message"]

    def test_delete_stocked_warehouse_conflicts(self, client, admin_headers, stocked):
        _, warehouse_id = stocked
        resp = client.delete(f"/api/warehouses/{warehouse_id}", headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json["error"]["code"] == "CONFLICT"

        db.session.expire_all()
        assert client.get(f"/api/warehouses/{warehouse_id}", headers=admin_headers).status_code == 200

    def test_missing_product_is_404(self, client, admin_headers, db_session):
        resp = client.get("/api/products/123456", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json["error"]["details"] == {"entity": "product", "id": 123456}

    def test_reserve_and_release(self, client, admin_headers, stocked):
        product_id, warehouse_id = stocked
        base = f"/api/stock/{product_id}/{warehouse_id}"

        assert client.post(f"{base}/reserved", json={"delta": 40}, headers=admin_headers).status_code == 200
        too_low = client.put(f"{base}/on-hand", json={"quantity_on_hand": 39}, headers=admin_headers)
        assert too_low.status_code == 400

        released = client.post(f"{base}/reserved", json={"delta": -40}, headers=admin_headers)
        assert released.json["quantity_reserved"] == 0

    @pytest.mark.parametrize("delta", [10 ** 20, -(10 ** 20), 0])
    def test_out_of_range_delta_is_400(self, client, admin_headers, stocked, delta):
        product_id, warehouse_id = stocked
        resp = client.post(
            f"/api/stock/{product_id}/{warehouse_id}/reserved",
            json={"delta": delta},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"]["code"] == "VALIDATION_ERROR"

    def test_set_quantities_and_remove(self, client, admin_headers, stocked):
        product_id, warehouse_id = stocked
        base = f"/api/stock/{product_id}/{warehouse_id}"

        resp = client.put(
            f"{base}/quantities",
            json={"quantity_on_hand": 12, "quantity_reserved": 2, "last_counted_at": "2026-05-01T08:00:00Z"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["last_counted_at"] == "2026-05-01T08:00:00Z"

        assert client.delete(base, headers=admin_headers).status_code == 409
        client.post(f"{base}/reserved", json={"delta": -2}, headers=admin_headers)
        assert client.delete(base, headers=admin_headers).status_code == 200
        assert client.get(base, headers=admin_headers).status_code == 404

    def test_duplicate_assignment(self, client, admin_headers, stocked):
        product_id, warehouse_id = stocked
        resp = client.post(
            "/api/stock",
            json={"product_id": product_id, "warehouse_id": warehouse_id, "initial_on_hand": 1},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_reports(self, client, admin_headers, stocked):
        dashboard = client.get("/api/reports/dashboard", headers=admin_headers).json
        assert dashboard["total_on_hand"] == 100
        assert dashboard["profit_margin"] == "0.4000"

        products = client.get("/api/reports/products", headers=admin_headers).json["items"]
        assert products[0]["margin_percent"] == "40.00"


# =============================================================================
# SERVICE-LEVEL CAPABILITY CHECK
# =============================================================================


class TestCapabilityCheck:

    def test_admin_passes(self, db_session, admin_user):
        assert authorization.require_role(admin_user, "admin") is admin_user

    def test_staff_refused(self, db_session, staff_user):
        with pytest.raises(AuthorizationError) as exc:
            authorization.require_role(staff_user, "admin")
        assert exc.value.details == {"role": "staff", "required": ["admin"]}

    def test_inactive_admin_refused(self, db_session, admin_user):
        admin_user.is_active = False
        with pytest.raises(AuthorizationError):
            authorization.require_role(admin_user, "admin")
        db_session.rollback()

    def test_anonymous_refused(self):
        with pytest.raises(AuthorizationError):
            authorization.require_role(None, "admin", "staff")
