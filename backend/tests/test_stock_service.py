"""
Stock ledger tests.

Verifies:
- IN/OUT movements update current_stock and append exactly one movement
- OUT below zero is rejected and writes nothing
- Malformed quantity/direction/reason are rejected before any write
- Initial stock on product creation is recorded as a movement
- current_stock always equals the totals derived from movement history
"""

import pytest

from warehouse.models import Movement, Product
from warehouse.services import stock_service
from warehouse.services.products_service import delete_product
from warehouse.services.stock_service import (
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
    INITIAL_STOCK_REASON,
)
from warehouse.validation import ValidationError


def _movement_count(db_session, product_id: int) -> int:
    return db_session.query(Movement).filter_by(product_id=product_id).count()


class TestApplyMovement:

    def test_in_movement_increases_stock(self, db_session, product, user):
        movement = stock_service.apply_movement(
            product_id=product.id,
            quantity=5,
            direction="IN",
            reason="Supplier delivery",
            acting_user_id=user.id,
        )

        assert movement.type == "IN"
        assert movement.quantity == 5
        assert movement.previous_stock == 20
        assert movement.new_stock == 25
        assert movement.reason == "Supplier delivery"
        assert movement.user_id == user.id
        assert db_session.get(Product, product.id).current_stock == 25

    def test_out_movement_decreases_stock(self, db_session, product):
        movement = stock_service.apply_movement(product_id=product.id, quantity=7, direction="OUT")

        assert movement.previous_stock == 20
        assert movement.new_stock == 13
        assert movement.user_id is None
        assert db_session.get(Product, product.id).current_stock == 13

    def test_out_of_entire_stock_reaches_zero(self, db_session, product):
        movement = stock_service.apply_movement(product_id=product.id, quantity=20, direction="OUT")

        assert movement.new_stock == 0
        assert db_session.get(Product, product.id).current_stock == 0

    def test_direction_is_case_insensitive(self, product):
        movement = stock_service.apply_movement(product_id=product.id, quantity=1, direction="in")
        assert movement.type == "IN"

    def test_each_movement_appends_one_row(self, db_session, product):
        before = _movement_count(db_session, product.id)

        stock_service.apply_movement(product_id=product.id, quantity=3, direction="IN")
        stock_service.apply_movement(product_id=product.id, quantity=2, direction="OUT")

        assert _movement_count(db_session, product.id) == before + 2

    def test_movements_chain_previous_to_new_stock(self, db_session, product):
        first = stock_service.apply_movement(product_id=product.id, quantity=4, direction="OUT")
        second = stock_service.apply_movement(product_id=product.id, quantity=10, direction="IN")

        assert second.previous_stock == first.new_stock
        assert second.new_stock == 26

    def test_inactive_product_still_accepts_movements(self, db_session, product):
        delete_product(product_id=product.id)

        movement = stock_service.apply_movement(product_id=product.id, quantity=2, direction="OUT")
        assert movement.new_stock == 18

    def test_blank_reason_is_stored_as_null(self, product):
        movement = stock_service.apply_movement(product_id=product.id, quantity=1, direction="IN", reason="   ")
        assert movement.reason is None


class TestRejectedMovements:

    def test_insufficient_stock_writes_nothing(self, db_session, product):
        before = _movement_count(db_session, product.id)

        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.apply_movement(product_id=product.id, quantity=21, direction="OUT")

        assert exc_info.value.available == 20
        assert exc_info.value.requested == 21
        assert exc_info.value.product_id == product.id
        assert db_session.get(Product, product.id).current_stock == 20
        assert _movement_count(db_session, product.id) == before

    def test_out_on_empty_product_is_rejected(self, make_product):
        empty = make_product("EMPTY-1", stock=0)

        with pytest.raises(InsufficientStockError):
            stock_service.apply_movement(product_id=empty.id, quantity=1, direction="OUT")

    @pytest.mark.parametrize("quantity", [0, -3, True, 1.5, "5", None])
    def test_invalid_quantity(self, db_session, product, quantity):
        with pytest.raises(InvalidQuantityError) as exc_info:
            stock_service.apply_movement(product_id=product.id, quantity=quantity, direction="IN")

        assert exc_info.value.field == "quantity"
        assert db_session.get(Product, product.id).current_stock == 20

    @pytest.mark.parametrize("direction", ["", "ADJUST", None])
    def test_invalid_direction(self, product, direction):
        with pytest.raises(ValidationError) as exc_info:
            stock_service.apply_movement(product_id=product.id, quantity=1, direction=direction)
        assert exc_info.value.field == "type"

    def test_reason_too_long(self, product):
        with pytest.raises(ValidationError) as exc_info:
            stock_service.apply_movement(product_id=product.id, quantity=1, direction="IN", reason="x" * 101)
        assert exc_info.value.field == "reason"

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            stock_service.apply_movement(product_id=999_999, quantity=1, direction="IN")


class TestInitialStock:

    def test_initial_stock_is_recorded_as_movement(self, db_session, product, user):
        movements = db_session.query(Movement).filter_by(product_id=product.id).all()

        assert len(movements) == 1
        initial = movements[0]
        assert initial.type == "IN"
        assert initial.quantity == 20
        assert initial.previous_stock == 0
        assert initial.new_stock == 20
        assert initial.reason == INITIAL_STOCK_REASON
        assert initial.user_id == user.id

    def test_zero_initial_stock_records_no_movement(self, db_session, make_product):
        p = make_product("ZERO-1", stock=0)
        assert _movement_count(db_session, p.id) == 0


class TestStockHistoryTotals:

    def test_totals_match_current_stock(self, db_session, product):
        stock_service.apply_movement(product_id=product.id, quantity=5, direction="IN")
        stock_service.apply_movement(product_id=product.id, quantity=12, direction="OUT")
        stock_service.apply_movement(product_id=product.id, quantity=1, direction="OUT")

        totals = stock_service.stock_history_totals(product.id)

        assert totals["total_in"] == 25
        assert totals["total_out"] == 13
        assert totals["derived_stock"] == 12
        assert db_session.get(Product, product.id).current_stock == totals["derived_stock"]

    def test_totals_for_product_without_movements(self, make_product):
        p = make_product("NONE-1")
        totals = stock_service.stock_history_totals(p.id)
        assert totals["total_in"] == 0
        assert totals["total_out"] == 0
        assert totals["derived_stock"] == 0
