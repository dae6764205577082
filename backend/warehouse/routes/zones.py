# Overview: Flask API routes for storage zones; parses input and returns JSON responses.

# backend/warehouse/routes/zones.py
from flask import Blueprint, request

from ..decorators import require_auth
from ..models import Zone
from ..services import zone_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_zone,
    ValidationError,
    NotFoundError,
    ConflictError,
)

ZONE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "capacity"},
    required_on_create={"name"},
)

zones_bp = Blueprint("zones", __name__, url_prefix="/api/zones")


@zones_bp.get("")
@require_auth
def list_zones_route():
    zones = zone_service.list_zones()
    return {"items": [z.to_dict() for z in zones], "count": len(zones)}


@zones_bp.get("/<int:zone_id>")
@require_auth
def get_zone_route(zone_id: int):
    try:
        zone = zone_service.get_zone(zone_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return zone.to_dict(), 200


@zones_bp.post("")
@require_auth
def create_zone_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Zone, payload=payload, policy=ZONE_POLICY, partial=False)
        enforce_rules_zone(patch)
        zone = zone_service.create_zone(patch=patch)
    except ValidationError as e:
        return e.to_dict(), 400

    return zone.to_dict(), 201


@zones_bp.put("/<int:zone_id>")
@require_auth
def update_zone_route(zone_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Zone, payload=payload, policy=ZONE_POLICY, partial=True)
        enforce_rules_zone(patch)
        zone = zone_service.update_zone(zone_id=zone_id, patch=patch)
    except ValidationError as e:
        return e.to_dict(), 400
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return zone.to_dict(), 200


@zones_bp.delete("/<int:zone_id>")
@require_auth
def delete_zone_route(zone_id: int):
    """
    Hard delete. 409 while active products are still assigned to the zone.
    """
    try:
        zone_service.delete_zone(zone_id=zone_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return "", 204
