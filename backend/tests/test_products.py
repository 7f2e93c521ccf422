"""
Product API tests.

Verifies:
- SKU uniqueness (409) and field validation
- Administrative stock adjustment modes and their movement records
- Low-stock listing and role checks
"""

from inventory_api.models import StockMovement
from inventory_api.services import product_service

from conftest import stock_of


def new_product(client, headers, **fields):
    body = {"sku": "SKU-100", "name": "Blue Widget", "unit_type": "pcs", "purchase_rate_cents": 120}
    body.update(fields)
    return client.post("/api/products", json=body, headers=headers)


class TestCreateProduct:

    def test_create(self, client, manager_headers):
        response = new_product(client, manager_headers, current_stock=7, min_stock_level=2)

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["sku"] == "SKU-100"
        assert data["current_stock"] == 7
        assert data["is_low_stock"] is False

    def test_duplicate_sku(self, client, manager_headers):
        assert new_product(client, manager_headers).status_code == 201

        response = new_product(client, manager_headers, name="Another")

        assert response.status_code == 409
        body = response.get_json()
        assert body["details"] == {"field": "sku"}
        assert "SKU-100" in body["message"]

    def test_missing_required_and_unknown_fields(self, client, manager_headers):
        response = client.post("/api/products", json={"colour": "blue"}, headers=manager_headers)

        assert response.status_code == 400
        fields = {e["field"] for e in response.get_json()["errors"]}
        assert {"sku", "name", "colour"} <= fields

    def test_negative_stock_rejected(self, client, manager_headers):
        response = new_product(client, manager_headers, current_stock=-1)
        assert response.status_code == 400

    def test_staff_cannot_create(self, client, staff_headers):
        assert new_product(client, staff_headers).status_code == 403

    def test_unknown_category(self, client, manager_headers):
        response = new_product(client, manager_headers, category_id=999)
        assert response.status_code == 404


class TestUpdateProduct:

    def test_stock_is_not_writable_through_update(self, client, manager_headers, make_product):
        product = make_product(stock=5)

        response = client.put(
            f"/api/products/{product.id}", json={"current_stock": 500}, headers=manager_headers
        )

        assert response.status_code == 400
        assert stock_of(product.id) == 5

    def test_rename(self, client, manager_headers, make_product):
        product = make_product()
        response = client.put(f"/api/products/{product.id}", json={"name": "Renamed"}, headers=manager_headers)
        assert response.status_code == 200
        assert response.get_json()["data"]["name"] == "Renamed"

    def test_deactivate_hides_from_list(self, client, manager_headers, make_product):
        product = make_product()
        assert client.delete(f"/api/products/{product.id}", headers=manager_headers).status_code == 200

        listing = client.get("/api/products", headers=manager_headers).get_json()["data"]
        assert listing["items"] == []
        listing = client.get("/api/products?include_inactive=true", headers=manager_headers).get_json()["data"]
        assert [p["id"] for p in listing["items"]] == [product.id]


class TestAdjustStock:

    def test_add_subtract_set(self, client, manager_headers, make_product):
        product = make_product(stock=10)
        url = f"/api/products/{product.id}/stock"

        added = client.put(url, json={"quantity": 5, "operation": "add"}, headers=manager_headers)
        assert added.get_json()["data"]["current_stock"] == 15

        clamped = client.put(url, json={"quantity": 40, "operation": "subtract"}, headers=manager_headers)
        assert clamped.status_code == 200
        assert clamped.get_json()["data"]["current_stock"] == 0

        reset = client.put(url, json={"quantity": 12, "mode": "set"}, headers=manager_headers)
        assert reset.get_json()["data"]["current_stock"] == 12

        movements = client.get(f"/api/products/{product.id}/movements", headers=manager_headers).get_json()["data"]
        assert [m["quantity_delta"] for m in movements] == [12, -15, 5]
        assert all(m["movement_type"] == "adjustment" for m in movements)

    def test_missing_quantity(self, client, manager_headers, make_product):
        product = make_product(stock=10)
        response = client.put(f"/api/products/{product.id}/stock", json={"operation": "add"}, headers=manager_headers)
        assert response.status_code == 400

    def test_unknown_operation(self, client, manager_headers, make_product):
        product = make_product(stock=10)
        response = client.put(
            f"/api/products/{product.id}/stock", json={"quantity": 1, "operation": "double"}, headers=manager_headers
        )
        assert response.status_code == 400
        assert stock_of(product.id) == 10

    def test_no_change_records_nothing(self, db_session, make_product):
        product = make_product(stock=4)
        product_service.adjust_product_stock(product.id, 4, "set")
        assert db_session.query(StockMovement).count() == 0

    def test_unknown_product(self, client, manager_headers):
        response = client.put("/api/products/999/stock", json={"quantity": 1}, headers=manager_headers)
        assert response.status_code == 404


class TestQueries:

    def test_low_stock(self, client, staff_headers, make_product):
        low = make_product(name="Low", stock=1, min_stock=5)
        make_product(name="Fine", stock=50, min_stock=5)

        data = client.get("/api/products/low-stock", headers=staff_headers).get_json()["data"]

        assert [p["id"] for p in data] == [low.id]

    def test_search_by_sku(self, client, staff_headers, make_product):
        wanted = make_product("ABC-123", name="Thing")
        make_product("XYZ-999", name="Other")

        data = client.get("/api/products/search?q=abc", headers=staff_headers).get_json()["data"]

        assert [p["id"] for p in data] == [wanted.id]
