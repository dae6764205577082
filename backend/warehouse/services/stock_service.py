# Overview: Stock ledger; the only code path that changes Product.current_stock.

from __future__ import annotations

from ..extensions import db
from ..models import Product, Movement
from ..validation import ValidationError, NotFoundError, ConflictError
from warehouse.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
"""
Stock Ledger Invariants (authoritative)

- Product.current_stock >= 0 at all times.
- Every change to current_stock appends exactly one Movement in the same DB
  transaction; a reader never sees one write without the other.
- Movement.new_stock = previous_stock + quantity (IN) or - quantity (OUT),
  and equals Product.current_stock right after the movement commits.
- Movements are append-only (no updates/deletes).
- The read of previous_stock happens under a row lock (FOR UPDATE) and the
  write is version-checked, so concurrent callers never compute new_stock
  from a stale previous_stock. Losers of a race are re-run from the read.
- Business failures (unknown product, bad quantity, insufficient stock) are
  raised before anything is written and are never retried.
"""

MOVEMENT_IN = "IN"
MOVEMENT_OUT = "OUT"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)

INITIAL_STOCK_REASON = "Initial stock"
MAX_REASON_LENGTH = 100


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class InvalidQuantityError(ValidationError):
    def __init__(self, message: str = "quantity must be a positive integer"):
        super().__init__(message, "quantity")


class InsufficientStockError(ConflictError):
    """OUT movement larger than the product's current stock."""

    def __init__(self, *, product_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock: {available} available, {requested} requested"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError()
    if quantity <= 0:
        raise InvalidQuantityError()
    return quantity


def _validate_direction(direction) -> str:
    normalized = str(direction or "").strip().upper()
    if normalized not in MOVEMENT_TYPES:
        raise ValidationError("type must be IN or OUT", "type")
    return normalized


def _normalize_reason(reason: str | None) -> str | None:
    if reason is None:
        return None
    reason = str(reason).strip()
    if not reason:
        return None
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason exceeds max length {MAX_REASON_LENGTH}", "reason")
    return reason


def _load_product_for_update(product_id: int) -> Product:
    query = db.session.query(Product).filter(Product.id == product_id)
    # populate_existing: never trust an identity-map copy of current_stock
    product = lock_for_update(query).populate_existing().first()
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def _apply_movement_inner(
    *,
    product: Product,
    quantity: int,
    direction: str,
    reason: str | None = None,
    acting_user_id: int | None = None,
) -> Movement:
    """Core read-modify-append step without locking, retry, or commit.

    Called by apply_movement() and by product creation for initial stock.
    The caller owns the transaction.
    """
    previous_stock = product.current_stock or 0
    if direction == MOVEMENT_IN:
        new_stock = previous_stock + quantity
    else:
        new_stock = previous_stock - quantity

    if new_stock < 0:
        raise InsufficientStockError(
            product_id=product.id,
            available=previous_stock,
            requested=quantity,
        )

    product.current_stock = new_stock
    product.updated_at = utcnow()

    movement = Movement(
        product_id=product.id,
        type=direction,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        reason=reason,
        user_id=acting_user_id,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def apply_movement(
    *,
    product_id: int,
    quantity: int,
    direction: str,
    reason: str | None = None,
    acting_user_id: int | None = None,
) -> Movement:
    """
    Apply a signed stock change to one product and record it, indivisibly.

    Raises:
        ProductNotFoundError: product_id does not resolve (inactive is fine)
        InvalidQuantityError: quantity is not a positive integer
        ValidationError: direction is not IN/OUT, or reason too long
        InsufficientStockError: OUT would take current_stock below zero
        StorageUnavailableError: concurrency retries exhausted

    acting_user_id is passed explicitly by the caller; there is no ambient
    "current user" in this layer.
    """
    quantity = _validate_quantity(quantity)
    direction = _validate_direction(direction)
    reason = _normalize_reason(reason)

    def _op():
        try:
            product = _load_product_for_update(product_id)
            movement = _apply_movement_inner(
                product=product,
                quantity=quantity,
                direction=direction,
                reason=reason,
                acting_user_id=acting_user_id,
            )
        except (ProductNotFoundError, InsufficientStockError):
            # Release the row lock; nothing was written
            db.session.rollback()
            raise
        db.session.commit()
        return movement

    return run_with_retry(_op)


def stock_history_totals(product_id: int) -> dict:
    """
    IN/OUT totals over a product's full movement history.

    Used by consistency checks: current_stock must equal total_in - total_out.
    """
    rows = (
        db.session.query(Movement.type, db.func.coalesce(db.func.sum(Movement.quantity), 0))
        .filter(Movement.product_id == product_id)
        .group_by(Movement.type)
        .all()
    )
    totals = {MOVEMENT_IN: 0, MOVEMENT_OUT: 0}
    for movement_type, total in rows:
        totals[movement_type] = int(total or 0)
    return {
        "product_id": product_id,
        "total_in": totals[MOVEMENT_IN],
        "total_out": totals[MOVEMENT_OUT],
        "derived_stock": totals[MOVEMENT_IN] - totals[MOVEMENT_OUT],
    }
