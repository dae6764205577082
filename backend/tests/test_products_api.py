"""
Product and stock update API tests.

Verifies:
- Unauthenticated requests return 401
- Create/update/delete with validation mapped to 400/404/409
- current_stock can only change through POST /api/products/<id>/stock
- Stock updates return the movement and the refreshed product
"""

import pytest

from warehouse.models import Movement
from warehouse.services.products_service import get_product_by_code
from warehouse.services.stock_service import ProductNotFoundError


def _create_payload(**overrides) -> dict:
    payload = {
        "product_code": "TAPE-48",
        "name": "Packing Tape 48mm",
        "category": "Packaging",
        "current_stock": 12,
        "min_stock": 4,
        "unit_price_cents": 349,
    }
    payload.update(overrides)
    return payload


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/products/1"),
            ("GET", "/api/products/by-code/BOLT-M8"),
            ("PUT", "/api/products/1"),
            ("DELETE", "/api/products/1"),
            ("POST", "/api/products/1/stock"),
            ("GET", "/api/products/1/stock"),
            ("GET", "/api/movements"),
            ("GET", "/api/dashboard/metrics"),
            ("GET", "/api/reports/data"),
            ("GET", "/api/user/settings"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401


class TestCreateProduct:

    def test_create_with_initial_stock(self, client, headers, user, db_session, zone):
        resp = client.post("/api/products", json=_create_payload(zone_id=zone.id), headers=headers)

        assert resp.status_code == 201
        body = resp.json
        assert body["current_stock"] == 12
        assert body["stock_status"] == "in_stock"
        assert body["stock_value_cents"] == 12 * 349
        assert body["zone"]["name"] == "Zone A"

        movement = db_session.query(Movement).filter_by(product_id=body["id"]).one()
        assert movement.reason == "Initial stock"
        assert movement.user_id == user.id

    def test_lookup_by_code(self, client, headers):
        created = client.post("/api/products", json=_create_payload(), headers=headers).json

        resp = client.get("/api/products/by-code/TAPE-48", headers=headers)
        assert resp.status_code == 200
        assert resp.json["id"] == created["id"]
        assert resp.json["stock_status"] == "in_stock"

        assert client.get("/api/products/by-code/tape-48", headers=headers).status_code == 404
        assert client.get("/api/products/by-code/NOPE", headers=headers).status_code == 404

        assert get_product_by_code("TAPE-48").name == "Packing Tape 48mm"
        with pytest.raises(ProductNotFoundError):
            get_product_by_code("NOPE")

    def test_missing_required_fields(self, client, headers):
        resp = client.post("/api/products", json={"name": "No code"}, headers=headers)
        assert resp.status_code == 400
        assert "Missing required fields" in resp.json["error"]

    def test_duplicate_code_conflicts(self, client, headers, product):
        resp = client.post("/api/products", json=_create_payload(product_code="BOLT-M8"), headers=headers)
        assert resp.status_code == 409

    def test_unknown_zone_rejected(self, client, headers):
        resp = client.post("/api/products", json=_create_payload(zone_id=999_999), headers=headers)
        assert resp.status_code == 400
        assert resp.json["field"] == "zone_id"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("current_stock", -1),
            ("min_stock", -5),
            ("unit_price_cents", 12.5),
            ("unit_price_cents", "1e3"),
            ("current_stock", True),
        ],
    )
    def test_bad_numbers_rejected(self, client, headers, field, value):
        resp = client.post("/api/products", json=_create_payload(**{field: value}), headers=headers)
        assert resp.status_code == 400
        assert resp.json["field"] == field

    def test_unknown_field_rejected(self, client, headers):
        resp = client.post("/api/products", json=_create_payload(sku="X"), headers=headers)
        assert resp.status_code == 400
        assert resp.json["field"] == "sku"


class TestListAndGet:

    def test_list_with_status_filter(self, client, headers, product):
        client.post("/api/products", json=_create_payload(current_stock=0), headers=headers)

        resp = client.get("/api/products?status=out_of_stock", headers=headers)
        assert resp.status_code == 200
        assert [p["product_code"] for p in resp.json["items"]] == ["TAPE-48"]

        resp = client.get("/api/products?status=all", headers=headers)
        assert resp.json["count"] == 2

    def test_invalid_status_filter(self, client, headers):
        resp = client.get("/api/products?status=plenty", headers=headers)
        assert resp.status_code == 400

    def test_get_unknown_product(self, client, headers):
        assert client.get("/api/products/999999", headers=headers).status_code == 404


class TestUpdateAndDelete:

    def test_update_master_data(self, client, headers, product):
        resp = client.put(
            f"/api/products/{product.id}",
            json={"name": "M8 Bolt", "min_stock": 25},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json["name"] == "M8 Bolt"
        assert resp.json["stock_status"] == "low_stock"

    def test_update_cannot_touch_stock(self, client, headers, product):
        resp = client.put(f"/api/products/{product.id}", json={"current_stock": 999}, headers=headers)
        assert resp.status_code == 400
        assert resp.json["field"] == "current_stock"

    def test_update_to_taken_code_conflicts(self, client, headers, product):
        client.post("/api/products", json=_create_payload(), headers=headers)
        resp = client.put(f"/api/products/{product.id}", json={"product_code": "TAPE-48"}, headers=headers)
        assert resp.status_code == 409

    def test_update_unknown_product(self, client, headers):
        resp = client.put("/api/products/999999", json={"name": "x"}, headers=headers)
        assert resp.status_code == 404

    def test_delete_is_soft(self, client, headers, product):
        resp = client.delete(f"/api/products/{product.id}", headers=headers)
        assert resp.status_code == 204

        assert client.get("/api/products", headers=headers).json["count"] == 0
        detail = client.get(f"/api/products/{product.id}", headers=headers)
        assert detail.status_code == 200
        assert detail.json["is_active"] is False

        # idempotent
        assert client.delete(f"/api/products/{product.id}", headers=headers).status_code == 204


class TestStockUpdate:

    def test_stock_in(self, client, headers, user, product):
        resp = client.post(
            f"/api/products/{product.id}/stock",
            json={"quantity": 5, "type": "in", "reason": "Delivery"},
            headers=headers,
        )

        assert resp.status_code == 200
        assert resp.json["movement"]["type"] == "IN"
        assert resp.json["movement"]["previous_stock"] == 20
        assert resp.json["movement"]["new_stock"] == 25
        assert resp.json["movement"]["user_id"] == user.id
        assert resp.json["product"]["current_stock"] == 25

    def test_stock_out_insufficient(self, client, headers, product):
        resp = client.post(
            f"/api/products/{product.id}/stock",
            json={"quantity": 21, "type": "OUT"},
            headers=headers,
        )

        assert resp.status_code == 409
        assert resp.json["available"] == 20
        assert resp.json["requested"] == 21
        assert client.get(f"/api/products/{product.id}", headers=headers).json["current_stock"] == 20

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"quantity": 0, "type": "IN"}, "quantity"),
            ({"quantity": -2, "type": "IN"}, "quantity"),
            ({"quantity": 2.5, "type": "IN"}, "quantity"),
            ({"quantity": 2, "type": "MOVE"}, "type"),
            ({"type": "IN"}, "quantity"),
            ({"quantity": 2}, "type"),
        ],
    )
    def test_invalid_stock_payload(self, client, headers, product, payload, field):
        resp = client.post(f"/api/products/{product.id}/stock", json=payload, headers=headers)
        assert resp.status_code == 400
        assert resp.json["field"] == field

    def test_stock_update_unknown_product(self, client, headers):
        resp = client.post("/api/products/999999/stock", json={"quantity": 1, "type": "IN"}, headers=headers)
        assert resp.status_code == 404

    def test_stock_ledger_view(self, client, headers, product):
        client.post(f"/api/products/{product.id}/stock", json={"quantity": 8, "type": "OUT"}, headers=headers)

        resp = client.get(f"/api/products/{product.id}/stock", headers=headers)

        assert resp.status_code == 200
        assert resp.json["current_stock"] == 12
        assert resp.json["total_in"] == 20
        assert resp.json["total_out"] == 8
        assert resp.json["consistent"] is True
