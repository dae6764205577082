# Overview: Flask API routes for products and stock updates; parses input and returns JSON responses.

# backend/warehouse/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.

Stock is read-only through PUT; the only way to change current_stock is
POST /api/products/<id>/stock, which goes through the stock ledger.
"""
from flask import Blueprint, current_app, request

from ..decorators import require_auth, acting_user_id
from ..models import Product, Movement
from ..services import metrics_service, products_service, stock_service
from ..services.metrics_service import ProductFilters, serialize_product
from ..services.stock_service import InsufficientStockError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    enforce_rules_stock_update,
    ValidationError,
    NotFoundError,
    ConflictError,
)

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_code",
        "name",
        "description",
        "category",
        "zone_id",
        "current_stock",
        "min_stock",
        "unit_price_cents",
    },
    required_on_create={"product_code", "name", "category"},
)

# current_stock is deliberately absent: stock moves only through the ledger
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_code",
        "name",
        "description",
        "category",
        "zone_id",
        "min_stock",
        "unit_price_cents",
        "is_active",
    },
)

STOCK_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "type", "reason"},
    required_on_create={"quantity", "type"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products.

    Query params:
    - category: exact match
    - zone_id: exact match
    - status: all | in_stock | low_stock | out_of_stock
    - search: case-insensitive match on name, product code or category
    - include_inactive: true to include soft-deleted products
    """
    try:
        filters = ProductFilters.from_args(request.args)
    except ValidationError as e:
        return e.to_dict(), 400

    products = metrics_service.filter_products(filters)
    return {
        "items": [serialize_product(p) for p in products],
        "count": len(products),
    }


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return serialize_product(product), 200


@products_bp.get("/by-code/<string:product_code>")
@require_auth
def get_product_by_code_route(product_code: str):
    """Look a product up by its unique product_code (exact, case-sensitive)."""
    try:
        product = products_service.get_product_by_code(product_code)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return serialize_product(product), 200


@products_bp.post("")
@require_auth
def create_product_route():
    """
    Create a product.

    A positive current_stock is recorded as an initial IN movement in the
    same transaction as the product row.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product_with_initial_stock(
            patch=patch,
            acting_user_id=acting_user_id(),
        )
    except ValidationError as e:
        return e.to_dict(), 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    current_app.logger.info(
        "Created product id=%s code=%s initial_stock=%s",
        created.id, created.product_code, created.current_stock,
    )
    return serialize_product(created), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ValidationError as e:
        return e.to_dict(), 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return serialize_product(updated), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Soft-delete (is_active=false); movement history is kept."""
    try:
        products_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return "", 204


@products_bp.post("/<int:product_id>/stock")
@require_auth
def update_stock_route(product_id: int):
    """
    Apply an IN or OUT movement.

    Body: {"quantity": int > 0, "type": "IN" | "OUT", "reason": str?}

    Returns 400 on malformed input, 404 for an unknown product and 409 when
    an OUT would take stock below zero (nothing is written in that case).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Movement, payload=payload, policy=STOCK_UPDATE_POLICY, partial=False)
        enforce_rules_stock_update(patch)
        movement = stock_service.apply_movement(
            product_id=product_id,
            quantity=patch["quantity"],
            direction=patch["type"],
            reason=patch.get("reason"),
            acting_user_id=acting_user_id(),
        )
    except ValidationError as e:
        return e.to_dict(), 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except InsufficientStockError as e:
        current_app.logger.warning(
            "Rejected OUT movement product_id=%s requested=%s available=%s",
            e.product_id, e.requested, e.available,
        )
        return {
            "error": str(e),
            "available": e.available,
            "requested": e.requested,
        }, 409

    product = products_service.get_product(product_id)
    return {
        "message": "Stock updated successfully",
        "movement": movement.to_dict(),
        "product": serialize_product(product),
    }, 200


@products_bp.get("/<int:product_id>/stock")
@require_auth
def stock_ledger_route(product_id: int):
    """Current stock next to the totals derived from the movement history."""
    try:
        product = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    totals = stock_service.stock_history_totals(product_id)
    return {
        "product_id": product.id,
        "current_stock": product.current_stock,
        "stock_status": metrics_service.classify_stock(product),
        **totals,
        "consistent": totals["derived_stock"] == product.current_stock,
    }, 200
