# Overview: Report data sets consumed by exporters; rendering lives elsewhere.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..models import Movement, Product
from warehouse.time_utils import parse_date_bound, to_utc_z, utcnow
from .concurrency import storage_guard
from .metrics_service import (
    ProductFilters,
    STOCK_LOW,
    STOCK_OUT,
    STOCK_STATUSES,
    classify_stock,
    filter_products,
    serialize_product,
    total_stock_value_cents,
    zone_status,
)
from .stock_service import MOVEMENT_IN

# Newest movements scanned for the report movement sheet
REPORT_MOVEMENT_LIMIT = 1000

GROUP_BY_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%G-W%V",
    "month": "%Y-%m",
}


class ReportError(Exception):
    """Raised when report parameters are unusable."""
    pass


@dataclass(frozen=True)
class ReportFilters:
    start_date: str | None = None
    end_date: str | None = None
    zone_id: int | None = None
    category: str | None = None
    status: str | None = None
    product_code: str | None = None


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_date_bound(start)
        end_dt = parse_date_bound(end, end_of_day=True)
    except ValueError:
        raise ReportError("start_date and end_date must be ISO-8601 dates")
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start_date must be on or before end_date")
    return start_dt, end_dt


def _movements_in_range(start_dt, end_dt, *, limit: int | None = None) -> list[Movement]:
    query = db.session.query(Movement)
    if start_dt:
        query = query.filter(Movement.created_at >= start_dt)
    if end_dt:
        query = query.filter(Movement.created_at <= end_dt)
    query = query.order_by(Movement.created_at.desc(), Movement.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def _low_stock_row(product: Product) -> dict:
    shortage = max((product.min_stock or 0) - (product.current_stock or 0), 0)
    return {
        "id": product.id,
        "product_code": product.product_code,
        "name": product.name,
        "current_stock": product.current_stock,
        "min_stock": product.min_stock,
        "shortage": shortage,
        "unit_price_cents": product.unit_price_cents,
        "reorder_value_cents": shortage * (product.unit_price_cents or 0),
        "zone_name": product.zone.name if product.zone else None,
    }


@storage_guard
def generate_report_data(filters: ReportFilters | None = None) -> dict:
    """
    Everything an inventory report needs, as plain data.

    Inventory rows honour every filter; low/out-of-stock sheets and the
    summary always cover all active products so alerts are never hidden by
    a narrow filter.
    """
    filters = filters or ReportFilters()
    if filters.status is not None and filters.status not in STOCK_STATUSES:
        raise ReportError(f"status must be one of: {', '.join(STOCK_STATUSES)}")
    start_dt, end_dt = _parse_range(filters.start_date, filters.end_date)

    inventory = filter_products(
        ProductFilters(
            category=filters.category,
            zone_id=filters.zone_id,
            status=filters.status,
            search=filters.product_code,
        )
    )
    movements = _movements_in_range(start_dt, end_dt, limit=REPORT_MOVEMENT_LIMIT)
    zones = zone_status()
    low_stock = filter_products(ProductFilters(status=STOCK_LOW))
    out_of_stock = filter_products(ProductFilters(status=STOCK_OUT))

    active = filter_products(ProductFilters())
    summary = {
        "total_items": len(active),
        "total_value_cents": total_stock_value_cents(),
        "low_stock_items": sum(1 for p in active if classify_stock(p) == STOCK_LOW),
        "out_of_stock_items": sum(1 for p in active if classify_stock(p) == STOCK_OUT),
        "total_zones": len(zones),
        "total_movements": len(movements),
    }

    return {
        "generated_at": to_utc_z(utcnow()),
        "start_date": to_utc_z(start_dt),
        "end_date": to_utc_z(end_dt),
        "inventory": [
            {**serialize_product(p), "zone_name": p.zone.name if p.zone else None}
            for p in inventory
        ],
        "movements": [m.to_dict(include_relations=True) for m in movements],
        "zones": zones,
        "low_stock_items": [_low_stock_row(p) for p in low_stock],
        "out_of_stock_items": [_low_stock_row(p) for p in out_of_stock],
        "summary": summary,
    }


@storage_guard
def movement_summary(
    *,
    start: str | None = None,
    end: str | None = None,
    group_by: str = "day",
) -> dict:
    """IN/OUT quantities per day, ISO week or month, oldest period first."""
    fmt = GROUP_BY_FORMATS.get(group_by)
    if fmt is None:
        raise ReportError("group_by must be day, week, or month")
    start_dt, end_dt = _parse_range(start, end)

    buckets: dict[str, dict] = {}
    for movement in _movements_in_range(start_dt, end_dt):
        period = movement.created_at.strftime(fmt)
        row = buckets.setdefault(
            period,
            {"period": period, "movement_count": 0, "in_quantity": 0, "out_quantity": 0},
        )
        row["movement_count"] += 1
        if movement.type == MOVEMENT_IN:
            row["in_quantity"] += movement.quantity
        else:
            row["out_quantity"] += movement.quantity

    rows = sorted(buckets.values(), key=lambda r: r["period"])
    for row in rows:
        row["net_quantity"] = row["in_quantity"] - row["out_quantity"]

    return {
        "group_by": group_by,
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "rows": rows,
    }
