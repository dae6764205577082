# Overview: Flask API route for dashboard metrics.

# backend/warehouse/routes/dashboard.py
from flask import Blueprint

from ..decorators import require_auth, acting_user_id
from ..services import metrics_service, settings_service

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/metrics")
@require_auth
def dashboard_metrics_route():
    """
    Totals, stock alerts, stock value, recent activity and zone occupancy.

    Money is reported in cents; the display block carries the caller's
    currency and locale so the client can format it.
    """
    settings = settings_service.get_user_settings(acting_user_id())
    return metrics_service.dashboard_metrics(settings=settings), 200
