"""
Recycle bin listing tests.

Verifies:
- Only soft-deleted documents are listed, newest first, per kind
- Search on reference number / remarks and date-range filters
"""

from datetime import timedelta

import pytest

from inventory_api.errors import NotFound, ValidationFailed
from inventory_api.extensions import db
from inventory_api.services import document_service
from inventory_api.services.document_service import ById
from inventory_api.services.recycle_bin_service import list_deleted
from inventory_api.time_utils import utcnow


def make_sale(product, **header):
    data = {"items": [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}]}
    data.update(header)
    return document_service.create_document("sale", data)


def make_purchase(product, **header):
    data = {"vendor": "Acme", "items": [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}]}
    data.update(header)
    return document_service.create_document("purchase", data)


def trash(kind, doc):
    document_service.soft_delete_document(kind, ById(doc.id))


class TestListDeleted:

    def test_only_deleted_of_that_kind(self, make_product):
        product = make_product(stock=10)
        kept = make_purchase(product)
        gone = make_purchase(product)
        trash("purchase", gone)
        trash("sale", make_sale(product))

        result = list_deleted("purchase")

        assert [d.id for d in result["items"]] == [gone.id]
        assert kept.id not in [d.id for d in result["items"]]
        assert result["pagination"]["total"] == 1

    def test_newest_first_and_pagination(self, make_product):
        product = make_product(stock=10)
        docs = [make_purchase(product) for _ in range(3)]
        for doc in docs:
            trash("purchase", doc)

        first_page = list_deleted("purchase", page=1, limit=2)
        second_page = list_deleted("purchase", page=2, limit=2)

        assert [d.id for d in first_page["items"]] == [docs[2].id, docs[1].id]
        assert [d.id for d in second_page["items"]] == [docs[0].id]
        assert first_page["pagination"]["pages"] == 2

    def test_search_reference_and_remarks(self, make_product):
        product = make_product(stock=10)
        by_ref = make_purchase(product, ref_num="ACME-555")
        by_remark = make_purchase(product, remarks="Damaged on arrival")
        other = make_purchase(product)
        for doc in (by_ref, by_remark, other):
            trash("purchase", doc)

        assert [d.id for d in list_deleted("purchase", search="acme-5")["items"]] == [by_ref.id]
        assert [d.id for d in list_deleted("purchase", search="DAMAGED")["items"]] == [by_remark.id]

    def test_date_range(self, make_product):
        product = make_product(stock=10)
        old = make_purchase(product)
        recent = make_purchase(product)
        old_row = db.session.get(type(old), old.id)
        old_row.created_at = utcnow() - timedelta(days=10)
        db.session.commit()
        trash("purchase", old)
        trash("purchase", recent)

        today = utcnow().date().isoformat()
        ten_days_ago = (utcnow() - timedelta(days=10)).date().isoformat()

        assert [d.id for d in list_deleted("purchase", start_date=today)["items"]] == [recent.id]
        assert [d.id for d in list_deleted("purchase", end_date=ten_days_ago)["items"]] == [old.id]

    def test_bad_date(self, db_session):
        with pytest.raises(ValidationFailed):
            list_deleted("sale", end_date="31/12/2025")

    def test_unknown_kind(self, db_session):
        with pytest.raises(NotFound):
            list_deleted("quote")
