"""
Stock adjustment engine tests.

Verifies:
- Signed deltas update stock and append one movement with before/after values
- Stock never goes negative and zero deltas are rejected
- Movement type defaults and validation
- Low-stock report buckets
"""

import pytest

from posledger.errors import InvalidAdjustmentError, NotFoundError, ValidationError
from posledger.models import Product, StockMovement
from posledger.money import MAX_QUANTITY
from posledger.services import stock_service


class TestAdjustStock:

    def test_positive_delta_records_in_movement(self, db_session, make_product):
        product = make_product(stock=5)

        movement = stock_service.adjust_stock(product.id, 3, reason="Delivery")

        assert db_session.get(Product, product.id).stock_quantity == 8
        assert movement.movement_type == "in"
        assert movement.quantity == 3
        assert (movement.previous_stock, movement.new_stock) == (5, 8)
        assert movement.reason == "Delivery"

    def test_negative_delta_records_out_movement(self, db_session, make_product):
        product = make_product(stock=5)

        movement = stock_service.adjust_stock(product.id, -5, reason="Damaged")

        assert db_session.get(Product, product.id).stock_quantity == 0
        assert movement.movement_type == "out"
        assert movement.quantity == 5

    def test_explicit_adjustment_type(self, db_session, make_product):
        product = make_product(stock=5)
        movement = stock_service.adjust_stock(product.id, -2, movement_type="adjustment", reason="Count")
        assert movement.movement_type == "adjustment"

    def test_would_go_negative_rejected_and_nothing_written(self, db_session, make_product):
        product = make_product(stock=2)
        before = db_session.query(StockMovement).filter_by(product_id=product.id).count()

        with pytest.raises(InvalidAdjustmentError) as exc:
            stock_service.adjust_stock(product.id, -3)

        assert exc.value.details["current_stock"] == 2
        assert exc.value.details["quantity_delta"] == -3
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock_quantity == 2
        assert db_session.query(StockMovement).filter_by(product_id=product.id).count() == before

    def test_zero_delta_rejected(self, db_session, make_product):
        product = make_product(stock=2)
        with pytest.raises(InvalidAdjustmentError):
            stock_service.adjust_stock(product.id, 0)

    @pytest.mark.parametrize("delta", [1.5, "3", True, None])
    def test_non_integer_delta_rejected(self, db_session, make_product, delta):
        product = make_product(stock=2)
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product.id, delta)

    @pytest.mark.parametrize("movement_type,delta", [("in", -1), ("out", 1), ("bogus", 1)])
    def test_movement_type_must_match_direction(self, db_session, make_product, movement_type, delta):
        product = make_product(stock=2)
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product.id, delta, movement_type=movement_type)

    @pytest.mark.parametrize("delta", [MAX_QUANTITY + 1, -(MAX_QUANTITY + 1), 10**19, -(10**19)])
    def test_delta_beyond_quantity_cap_rejected(self, db_session, make_product, delta):
        product = make_product(stock=2)
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product.id, delta, reason="Typo")
        db_session.expire_all()
        assert db_session.get(Product, product.id).stock_quantity == 2

    def test_stock_cannot_exceed_cap(self, db_session, make_product):
        product = make_product(stock=MAX_QUANTITY - 1)

        with pytest.raises(InvalidAdjustmentError) as exc:
            stock_service.adjust_stock(product.id, 2)
        assert exc.value.details["current_stock"] == MAX_QUANTITY - 1

        movement = stock_service.adjust_stock(product.id, 1)
        assert movement.new_stock == MAX_QUANTITY

    def test_restock_beyond_cap_rejected(self, db_session, make_product):
        product = make_product(stock=0)
        with pytest.raises(ValidationError):
            stock_service.restock(product.id, MAX_QUANTITY + 1)

    def test_initial_stock_beyond_cap_rejected(self, db_session, make_product):
        with pytest.raises(InvalidAdjustmentError):
            make_product(stock=MAX_QUANTITY + 1)
        assert db_session.query(Product).count() == 0

    def test_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.adjust_stock(9999, 1)

    def test_inactive_product(self, db_session, make_product):
        product = make_product(stock=2, is_active=False)
        with pytest.raises(NotFoundError):
            stock_service.adjust_stock(product.id, 1)


class TestRestockAndHistory:

    def test_restock_is_in_movement(self, db_session, make_product):
        product = make_product(stock=1)
        movement = stock_service.restock(product.id, 10)
        assert movement.movement_type == "in"
        assert movement.reason == "Restock"
        assert db_session.get(Product, product.id).stock_quantity == 11

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_restock_requires_positive_quantity(self, db_session, make_product, quantity):
        product = make_product(stock=1)
        with pytest.raises(ValidationError):
            stock_service.restock(product.id, quantity)

    def test_initial_stock_is_first_movement(self, db_session, make_product):
        product = make_product(stock=7)
        movements = stock_service.list_movements(product.id)
        assert len(movements) == 1
        assert movements[0].reason == "Initial stock"
        assert (movements[0].previous_stock, movements[0].new_stock) == (0, 7)

    def test_movements_chain_matches_stock(self, db_session, make_product):
        product = make_product(stock=10)
        for delta in (5, -3, -12, 4):
            stock_service.adjust_stock(product.id, delta)

        movements = list(reversed(stock_service.list_movements(product.id)))
        for earlier, later in zip(movements, movements[1:]):
            assert later.previous_stock == earlier.new_stock
        assert movements[-1].new_stock == db_session.get(Product, product.id).stock_quantity == 4


class TestLowStockReport:

    def test_buckets(self, db_session, make_product):
        make_product(name="Plenty", stock=50, min_stock_level=10)
        make_product(name="Low", stock=3, min_stock_level=10)
        make_product(name="AtMin", stock=10, min_stock_level=10)
        make_product(name="Empty", stock=0)
        make_product(name="Hidden", stock=0, is_active=False)

        report = stock_service.low_stock_report()

        assert [p["name"] for p in report["low_stock"]] == ["Low", "AtMin"]
        assert [p["name"] for p in report["out_of_stock"]] == ["Empty"]
