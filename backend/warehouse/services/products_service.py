# backend/warehouse/services/products_service.py
"""
Products Service

- create_product_with_initial_stock writes the product and its initial IN
  movement in one transaction.
- update_product never touches current_stock; stock only moves through the
  ledger (stock_service).
- delete_product is a soft delete (is_active=False); rows are kept so the
  movement history keeps its product reference.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Zone
from ..validation import ConflictError, ValidationError
from .concurrency import run_with_retry, storage_guard
from .stock_service import (
    ProductNotFoundError,
    MOVEMENT_IN,
    INITIAL_STOCK_REASON,
    _apply_movement_inner,
)

PRODUCT_MUTABLE_FIELDS = {
    "product_code",
    "name",
    "description",
    "category",
    "zone_id",
    "min_stock",
    "unit_price_cents",
    "is_active",
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_zone(zone_id: int | None) -> None:
    if zone_id is None:
        return
    if db.session.get(Zone, zone_id) is None:
        raise ValidationError(f"Zone {zone_id} does not exist", "zone_id")


def _ensure_code_available(product_code: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(Product.product_code == product_code)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"Product code {product_code!r} already exists")


@storage_guard
def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


@storage_guard
def get_product_by_code(product_code: str) -> Product:
    product = db.session.query(Product).filter(Product.product_code == product_code).first()
    if product is None:
        raise ProductNotFoundError(product_code)
    return product


def create_product_with_initial_stock(
    *,
    patch: dict,
    acting_user_id: int | None = None,
) -> Product:
    """
    Create a product and, when current_stock > 0, its initial IN movement
    (previous_stock=0, reason "Initial stock") in one commit.

    Raises:
        ValidationError: zone_id does not exist
        ConflictError: product_code already used
    """
    initial_stock = patch.get("current_stock") or 0

    _require_zone(patch.get("zone_id"))
    _ensure_code_available(patch["product_code"])

    p = Product(current_stock=0, min_stock=0, is_active=True)
    apply_product_patch(p, patch)
    if p.min_stock is None:
        p.min_stock = 0

    try:
        db.session.add(p)
        db.session.flush()  # ensure p.id exists before the movement references it

        if initial_stock > 0:
            _apply_movement_inner(
                product=p,
                quantity=initial_stock,
                direction=MOVEMENT_IN,
                reason=INITIAL_STOCK_REASON,
                acting_user_id=acting_user_id,
            )

        db.session.commit()
    except IntegrityError as exc:
        # Lost a race on the unique product_code
        db.session.rollback()
        raise ConflictError(f"Product code {patch['product_code']!r} already exists") from exc

    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Patch product master data.

    Raises:
        ProductNotFoundError: unknown product_id
        ValidationError: zone_id does not exist
        ConflictError: new product_code already used
    """
    def _op():
        p = get_product(product_id)

        if "product_code" in patch and patch["product_code"] != p.product_code:
            _ensure_code_available(patch["product_code"], exclude_id=p.id)
        if "zone_id" in patch:
            _require_zone(patch["zone_id"])

        apply_product_patch(p, patch)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("Product update conflicts with an existing product") from exc
        return p

    # A concurrent stock movement bumps version_id; re-read and re-apply
    return run_with_retry(_op)


def delete_product(*, product_id: int) -> Product:
    """
    Soft-delete a product. Idempotent: deleting an inactive product is a no-op.
    """
    def _op():
        p = get_product(product_id)
        if p.is_active:
            p.is_active = False
            db.session.commit()
        return p

    return run_with_retry(_op)
