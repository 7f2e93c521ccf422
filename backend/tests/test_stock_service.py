"""
Stock ledger tests.

Verifies:
- Increases always apply; decreases are guarded and never go negative
- A refused decrease leaves the level untouched
- Administrative add/subtract/set modes
- Concurrent decreases never oversell
"""

import threading

import pytest

from inventory_api import create_app
from inventory_api.errors import InsufficientStock, ProductNotFound, ValidationFailed
from inventory_api.extensions import db
from inventory_api.models import Product
from inventory_api.services.stock_service import (
    DECREASE,
    INCREASE,
    adjust_stock,
    apply_delta,
    check_availability,
)

from conftest import stock_of


class TestApplyDelta:

    def test_increase(self, make_product):
        product = make_product(stock=50)
        assert apply_delta(product.id, 10, INCREASE) == 60
        db.session.commit()
        assert stock_of(product.id) == 60

    def test_decrease(self, make_product):
        product = make_product(stock=50)
        assert apply_delta(product.id, 20, DECREASE) == 30

    def test_decrease_to_exactly_zero(self, make_product):
        product = make_product(stock=5)
        assert apply_delta(product.id, 5, DECREASE) == 0

    def test_overdraw_raises_and_leaves_stock(self, make_product):
        product = make_product("SKU-LOW", name="Widget", stock=3)

        with pytest.raises(InsufficientStock) as excinfo:
            apply_delta(product.id, 5, DECREASE)

        err = excinfo.value
        assert err.status_code == 400
        assert err.available == 3
        assert err.requested == 5
        assert err.shortfall == 2
        assert err.message == "Insufficient stock for product Widget. Available: 3, Requested: 5"
        assert stock_of(product.id) == 3

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFound):
            apply_delta(9999, 1, INCREASE)
        with pytest.raises(ProductNotFound):
            apply_delta(9999, 1, DECREASE)

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "3"])
    def test_rejects_non_positive_or_non_integer(self, make_product, quantity):
        product = make_product(stock=10)
        with pytest.raises(ValidationFailed):
            apply_delta(product.id, quantity, INCREASE)
        assert stock_of(product.id) == 10

    def test_unknown_direction(self, make_product):
        product = make_product(stock=10)
        with pytest.raises(ValidationFailed):
            apply_delta(product.id, 1, "sideways")

    def test_order_does_not_matter_when_no_guard_trips(self, make_product):
        a = make_product(stock=10)
        b = make_product(stock=10)

        apply_delta(a.id, 4, INCREASE)
        apply_delta(a.id, 7, DECREASE)

        apply_delta(b.id, 7, DECREASE)
        apply_delta(b.id, 4, INCREASE)

        assert stock_of(a.id) == stock_of(b.id) == 7


class TestAdjustStock:

    def test_add(self, make_product):
        product = make_product(stock=10)
        assert adjust_stock(product.id, 5, "add") == 15

    def test_subtract(self, make_product):
        product = make_product(stock=10)
        assert adjust_stock(product.id, 4, "subtract") == 6

    def test_subtract_clamps_at_zero(self, make_product):
        product = make_product(stock=10)
        assert adjust_stock(product.id, 25, "subtract") == 0

    def test_set(self, make_product):
        product = make_product(stock=10)
        assert adjust_stock(product.id, 42, "set") == 42
        assert adjust_stock(product.id, 0, "set") == 0

    def test_unknown_mode(self, make_product):
        product = make_product(stock=10)
        with pytest.raises(ValidationFailed):
            adjust_stock(product.id, 1, "multiply")

    def test_negative_quantity_rejected(self, make_product):
        product = make_product(stock=10)
        with pytest.raises(ValidationFailed):
            adjust_stock(product.id, -3, "set")
        assert stock_of(product.id) == 10

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFound):
            adjust_stock(9999, 1, "add")


class TestCheckAvailability:

    def test_passes_when_covered(self, make_product):
        product = make_product(stock=5)
        check_availability({product.id: 5})

    def test_reports_first_shortfall(self, make_product):
        ok = make_product(stock=5)
        short = make_product(name="Gadget", stock=1)

        with pytest.raises(InsufficientStock) as excinfo:
            check_availability({ok.id: 2, short.id: 3})

        assert excinfo.value.product_id == short.id
        assert excinfo.value.available == 1

    def test_zero_requirement_is_skipped(self, db_session):
        check_availability({9999: 0})

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFound):
            check_availability({9999: 1})


class TestConcurrentDecrease:

    @pytest.fixture
    def file_app(self, tmp_path):
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'stock.sqlite3'}",
            'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30}},
            'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        })
        with app.app_context():
            db.create_all()
        yield app
        with app.app_context():
            db.drop_all()
            db.engine.dispose()

    def test_no_oversell_under_contention(self, file_app):
        with file_app.app_context():
            product = Product(sku="CONTENDED", name="Contended", unit_type="pcs", current_stock=10)
            db.session.add(product)
            db.session.commit()
            product_id = product.id

        thread_count = 8
        attempts_each = 3
        outcomes = []
        lock = threading.Lock()
        barrier = threading.Barrier(thread_count)

        def worker():
            with file_app.app_context():
                barrier.wait()
                for _ in range(attempts_each):
                    try:
                        apply_delta(product_id, 1, DECREASE)
                        db.session.commit()
                        outcome = "sold"
                    except InsufficientStock:
                        db.session.rollback()
                        outcome = "refused"
                    with lock:
                        outcomes.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(thread_count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(outcomes) == thread_count * attempts_each
        assert outcomes.count("sold") == 10
        with file_app.app_context():
            assert stock_of(product_id) == 0
