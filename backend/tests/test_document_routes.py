"""
Document API tests.

Verifies:
- Every route requires a bearer token; role checks per route
- JSON and multipart create, with attachment URLs in responses
- Error envelope and status codes (400 / 404 / 409)
- Delete / restore / final delete move or remove the attachment
"""

import io
import json
import os
import re

from inventory_api.extensions import db
from inventory_api.models import Purchase

from conftest import stock_of


def items_for(product, quantity, price=100):
    return [{"product_id": product.id, "quantity": quantity, "unit_price_cents": price}]


def create_purchase(client, headers, product, quantity=10, **extra):
    body = {"vendor": "Acme Supplies", "items": items_for(product, quantity)}
    body.update(extra)
    return client.post("/api/purchases", json=body, headers=headers)


def upload_purchase(client, headers, product, quantity=10, filename="scan.pdf"):
    return client.post(
        "/api/purchases",
        data={
            "vendor": "Acme Supplies",
            "items": json.dumps(items_for(product, quantity)),
            "invoice_file": (io.BytesIO(b"%PDF-1.4"), filename),
        },
        headers=headers,
        content_type="multipart/form-data",
    )


def stored_path(url):
    return url.replace("http://testserver", "")


class TestAuthRequired:

    def test_missing_token(self, client, db_session):
        response = client.get("/api/purchases")
        assert response.status_code == 401
        assert response.get_json() == {"success": False, "message": "Authentication required"}

    def test_unknown_token(self, client, db_session):
        response = client.get("/api/sales", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_every_kind_is_mounted(self, client, staff_headers):
        for slug in ("purchases", "purchase-orders", "purchase-returns", "sales"):
            response = client.get(f"/api/{slug}", headers=staff_headers)
            assert response.status_code == 200, slug
            assert response.get_json()["data"]["items"] == []


class TestCreate:

    def test_json_purchase(self, client, staff_headers, make_product):
        product = make_product(stock=50)

        response = create_purchase(client, staff_headers, product)

        assert response.status_code == 201
        body = response.get_json()
        assert body["success"] is True
        assert body["message"] == "Purchase created successfully"
        data = body["data"]
        assert re.fullmatch(r"R-\d{6}-01", data["receipt_number"])
        assert data["total_cents"] == 1000
        assert data["invoice_file"] is None
        assert data["items"][0]["product_name"] == product.name
        assert stock_of(product.id) == 60

    def test_multipart_purchase_stores_attachment(self, client, staff_headers, make_product, upload_root):
        product = make_product(stock=0)

        response = upload_purchase(client, staff_headers, product, quantity=3)

        assert response.status_code == 201
        url = response.get_json()["data"]["invoice_file"]
        assert re.fullmatch(r"http://testserver/uploads/invoices/\d+-invoice_file\.pdf", url)
        filename = url.rsplit("/", 1)[1]
        assert os.path.exists(os.path.join(upload_root, "invoices", filename))
        assert stock_of(product.id) == 3

        # Stored relative, served by the app
        doc = db.session.query(Purchase).one()
        assert doc.attachment_path == f"/uploads/invoices/{filename}"
        served = client.get(doc.attachment_path)
        assert served.status_code == 200
        assert served.data == b"%PDF-1.4"

    def test_failed_create_discards_upload(self, client, staff_headers, make_product, upload_root):
        product = make_product(stock=1)

        response = client.post(
            "/api/purchase-returns",
            data={
                "vendor": "Acme Supplies",
                "items": json.dumps(items_for(product, 5)),
                "invoice_file": (io.BytesIO(b"%PDF-1.4"), "return.pdf"),
            },
            headers=staff_headers,
            content_type="multipart/form-data",
        )

        assert response.status_code == 400
        body = response.get_json()
        assert body["success"] is False
        assert body["message"].startswith(f"Insufficient stock for product {product.name}")
        assert body["details"]["available"] == 1
        returns_dir = os.path.join(upload_root, "returns")
        assert not os.path.isdir(returns_dir) or os.listdir(returns_dir) == []
        assert stock_of(product.id) == 1

    def test_existing_attachment_reference_survives_failed_create(
        self, client, staff_headers, make_product, upload_root
    ):
        product = make_product(stock=0)
        existing = os.path.join(upload_root, "sales", "1700000000000-attachment.png")
        os.makedirs(os.path.dirname(existing), exist_ok=True)
        with open(existing, "wb") as f:
            f.write(b"png")

        response = client.post(
            "/api/sales",
            json={
                "items": items_for(product, 1),
                "attachment": "http://testserver/uploads/sales/1700000000000-attachment.png",
            },
            headers=staff_headers,
        )

        assert response.status_code == 400
        assert os.path.exists(existing)

    def test_foreign_attachment_url_is_refused(self, client, staff_headers, make_product):
        product = make_product(stock=0)

        response = create_purchase(
            client, staff_headers, product, invoice_file="https://cdn.example.com/scan.pdf"
        )

        assert response.status_code == 400
        assert response.get_json()["errors"][0]["field"] == "attachment"
        assert db.session.query(Purchase).count() == 0
        assert stock_of(product.id) == 0

    def test_disallowed_upload_type(self, client, staff_headers, make_product):
        product = make_product()
        response = upload_purchase(client, staff_headers, product, filename="evil.sh")
        assert response.status_code == 400
        assert response.get_json()["errors"][0]["field"] == "invoice_file"
        assert db.session.query(Purchase).count() == 0

    def test_validation_errors_listed(self, client, staff_headers, db_session):
        response = client.post("/api/sales", json={"items": [{"quantity": "two"}]}, headers=staff_headers)

        assert response.status_code == 400
        body = response.get_json()
        assert body["message"] == "Validation failed"
        fields = {e["field"] for e in body["errors"]}
        assert "items[0].product_id" in fields

    def test_unknown_product(self, client, staff_headers, db_session):
        response = client.post(
            "/api/sales",
            json={"items": [{"product_id": 4242, "quantity": 1, "unit_price_cents": 100}]},
            headers=staff_headers,
        )
        assert response.status_code == 400
        assert response.get_json()["message"] == "Product not found: 4242"

    def test_duplicate_reference(self, client, staff_headers, make_product):
        product = make_product()
        assert create_purchase(client, staff_headers, product, ref_num="ACME-1").status_code == 201

        response = create_purchase(client, staff_headers, product, ref_num="ACME-1")

        assert response.status_code == 409
        assert response.get_json()["message"] == (
            "Already created. Please check the recycle bin, cancelled or return section"
        )

    def test_sale_invoice_number(self, client, staff_headers, make_product):
        product = make_product(stock=5)
        response = client.post(
            "/api/sales",
            json={"customer_name": "Jo", "items": items_for(product, 2, price=300)},
            headers=staff_headers,
        )
        assert response.status_code == 201
        data = response.get_json()["data"]
        assert re.fullmatch(r"INV-\d{6}-0001", data["invoice_number"])
        assert data["total_cents"] == 600
        assert stock_of(product.id) == 3


class TestReadUpdate:

    def test_get_by_id_and_reference(self, client, staff_headers, make_product):
        product = make_product()
        created = create_purchase(client, staff_headers, product).get_json()["data"]

        by_id = client.get(f"/api/purchases/{created['id']}", headers=staff_headers)
        by_ref = client.get(f"/api/purchases/{created['ref_num']}", headers=staff_headers)

        assert by_id.status_code == 200
        assert by_ref.get_json()["data"]["id"] == created["id"]

    def test_numeric_reference_with_by_ref(self, client, staff_headers, make_product):
        product = make_product()
        created = create_purchase(client, staff_headers, product, ref_num="100200").get_json()["data"]

        response = client.get("/api/purchases/100200?by=ref", headers=staff_headers)

        assert response.status_code == 200
        assert response.get_json()["data"]["id"] == created["id"]

    def test_not_found(self, client, staff_headers, db_session):
        response = client.get("/api/sales/999", headers=staff_headers)
        assert response.status_code == 404
        assert response.get_json()["success"] is False

    def test_update_applies_difference(self, client, staff_headers, make_product):
        product = make_product(stock=50)
        created = create_purchase(client, staff_headers, product).get_json()["data"]

        response = client.put(
            f"/api/purchases/{created['id']}",
            json={"items": items_for(product, 4), "remarks": "short delivery"},
            headers=staff_headers,
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["remarks"] == "short delivery"
        assert data["receipt_number"] == created["receipt_number"]
        assert stock_of(product.id) == 54

    def test_list_and_search(self, client, staff_headers, make_product):
        widget = make_product(name="Blue Widget")
        create_purchase(client, staff_headers, widget)
        create_purchase(client, staff_headers, make_product(name="Red Gadget"))

        listing = client.get("/api/purchases?limit=1", headers=staff_headers).get_json()["data"]
        assert listing["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

        found = client.get("/api/purchases/search?q=widget", headers=staff_headers).get_json()["data"]
        assert len(found) == 1
        assert found[0]["items"][0]["product_name"] == "Blue Widget"

    def test_bad_page_parameter(self, client, staff_headers, db_session):
        response = client.get("/api/purchases?page=abc", headers=staff_headers)
        assert response.status_code == 400

    def test_number_route_is_idempotent(self, client, staff_headers, make_product):
        product = make_product()
        created = create_purchase(client, staff_headers, product).get_json()["data"]

        response = client.post(f"/api/purchases/{created['id']}/number", headers=staff_headers)

        assert response.status_code == 200
        assert response.get_json()["data"]["receipt_number"] == created["receipt_number"]


class TestStatus:

    def test_manager_marks_sale_paid(self, client, manager_headers, make_product):
        product = make_product(stock=5)
        created = client.post(
            "/api/sales", json={"items": items_for(product, 1)}, headers=manager_headers
        ).get_json()["data"]

        response = client.put(
            f"/api/sales/{created['id']}/status", json={"status": "paid"}, headers=manager_headers
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["status"] == "paid"
        assert stock_of(product.id) == 4

    def test_staff_cannot_change_status(self, client, staff_headers, make_product):
        product = make_product(stock=5)
        created = client.post(
            "/api/sales", json={"items": items_for(product, 1)}, headers=staff_headers
        ).get_json()["data"]

        response = client.put(
            f"/api/sales/{created['id']}/status", json={"status": "paid"}, headers=staff_headers
        )

        assert response.status_code == 403
        assert response.get_json()["required_roles"] == ["admin", "manager"]

    def test_purchases_have_no_status_route(self, client, manager_headers, make_product):
        product = make_product()
        created = create_purchase(client, manager_headers, product).get_json()["data"]
        response = client.put(
            f"/api/purchases/{created['id']}/status", json={"status": "paid"}, headers=manager_headers
        )
        assert response.status_code in (404, 405)


class TestDeleteRestore:

    def test_round_trip_moves_attachment(self, client, admin_headers, make_product, upload_root):
        product = make_product(stock=0)
        created = upload_purchase(client, admin_headers, product, quantity=5).get_json()["data"]
        filename = created["invoice_file"].rsplit("/", 1)[1]

        deleted = client.delete(f"/api/purchases/{created['id']}", headers=admin_headers)

        assert deleted.status_code == 200
        data = deleted.get_json()["data"]
        assert data["is_deleted"] is True
        assert data["invoice_file"] == f"http://testserver/uploads/recycle-bin/invoices/{filename}"
        assert os.path.exists(os.path.join(upload_root, "recycle-bin", "invoices", filename))
        assert stock_of(product.id) == 5

        assert client.get(f"/api/purchases/{created['id']}", headers=admin_headers).status_code == 404

        bin_listing = client.get("/api/purchases/recycle-bin", headers=admin_headers).get_json()["data"]
        assert [d["id"] for d in bin_listing["items"]] == [created["id"]]

        restored = client.put(f"/api/purchases/{created['id']}/restore", headers=admin_headers)

        assert restored.status_code == 200
        assert restored.get_json()["data"]["invoice_file"] == f"http://testserver/uploads/invoices/{filename}"
        assert os.path.exists(os.path.join(upload_root, "invoices", filename))
        assert stock_of(product.id) == 5

    def test_attachment_reference_follows_document(self, client, admin_headers, make_product, upload_root):
        product = make_product(stock=0)
        existing = os.path.join(upload_root, "invoices", "1700000000000-invoice_file.pdf")
        os.makedirs(os.path.dirname(existing), exist_ok=True)
        with open(existing, "wb") as f:
            f.write(b"%PDF-1.4")
        created = create_purchase(
            client, admin_headers, product,
            invoice_file="http://testserver/uploads/invoices/1700000000000-invoice_file.pdf",
        ).get_json()["data"]

        deleted = client.delete(f"/api/purchases/{created['id']}", headers=admin_headers)

        assert deleted.status_code == 200
        assert deleted.get_json()["data"]["invoice_file"] == (
            "http://testserver/uploads/recycle-bin/invoices/1700000000000-invoice_file.pdf"
        )
        assert not os.path.exists(existing)

    def test_restore_active_document(self, client, admin_headers, make_product):
        product = make_product()
        created = create_purchase(client, admin_headers, product).get_json()["data"]
        response = client.put(f"/api/purchases/{created['id']}/restore", headers=admin_headers)
        assert response.status_code == 404

    def test_final_delete(self, client, admin_headers, make_product, upload_root):
        product = make_product()
        created = upload_purchase(client, admin_headers, product).get_json()["data"]
        filename = created["invoice_file"].rsplit("/", 1)[1]
        client.delete(f"/api/purchases/{created['id']}", headers=admin_headers)

        response = client.delete(f"/api/purchases/final-delete/{created['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()["data"] == {"id": created["id"], "ref_num": created["ref_num"]}
        assert not os.path.exists(os.path.join(upload_root, "recycle-bin", "invoices", filename))
        assert db.session.query(Purchase).count() == 0

    def test_staff_cannot_delete(self, client, staff_headers, make_product):
        product = make_product()
        created = create_purchase(client, staff_headers, product).get_json()["data"]
        response = client.delete(f"/api/purchases/{created['id']}", headers=staff_headers)
        assert response.status_code == 403

    def test_manager_cannot_restore_or_purge(self, client, manager_headers, make_product):
        product = make_product()
        created = create_purchase(client, manager_headers, product).get_json()["data"]
        client.delete(f"/api/purchases/{created['id']}", headers=manager_headers)

        assert client.get("/api/purchases/recycle-bin", headers=manager_headers).status_code == 403
        assert client.put(f"/api/purchases/{created['id']}/restore", headers=manager_headers).status_code == 403
        assert client.delete(
            f"/api/purchases/final-delete/{created['id']}", headers=manager_headers
        ).status_code == 403
