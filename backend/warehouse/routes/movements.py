# Overview: Flask API routes for the stock movement log.

# backend/warehouse/routes/movements.py
from flask import Blueprint, request

from ..decorators import require_auth
from ..services import metrics_service
from ..services.metrics_service import DEFAULT_MOVEMENT_LIMIT
from ..validation import ValidationError

movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


def _int_arg(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", name)


@movements_bp.get("")
@require_auth
def list_movements_route():
    """
    Newest-first movement log.

    Query params:
    - product_id: only this product's movements
    - limit: 1..1000, default 50
    """
    try:
        movements = metrics_service.list_movements(
            product_id=_int_arg("product_id"),
            limit=_int_arg("limit", DEFAULT_MOVEMENT_LIMIT),
        )
    except ValidationError as e:
        return e.to_dict(), 400

    return {
        "items": [m.to_dict(include_relations=True) for m in movements],
        "count": len(movements),
    }
