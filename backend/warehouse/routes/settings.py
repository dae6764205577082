# Overview: Flask API routes for per-user display settings.

# backend/warehouse/routes/settings.py
from flask import Blueprint, request

from ..decorators import require_auth, acting_user_id
from ..models import UserSettings
from ..services import settings_service
from ..services.settings_service import SETTINGS_MUTABLE_FIELDS
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_settings,
    ValidationError,
)

SETTINGS_POLICY = ModelValidationPolicy(writable_fields=SETTINGS_MUTABLE_FIELDS)

settings_bp = Blueprint("settings", __name__, url_prefix="/api/user")


@settings_bp.get("/settings")
@require_auth
def get_settings_route():
    return settings_service.get_user_settings(acting_user_id()).to_dict(), 200


@settings_bp.put("/settings")
@require_auth
def update_settings_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=UserSettings, payload=payload, policy=SETTINGS_POLICY, partial=True)
        enforce_rules_settings(patch)
    except ValidationError as e:
        return e.to_dict(), 400

    settings = settings_service.update_user_settings(user_id=acting_user_id(), patch=patch)
    return settings.to_dict(), 200
