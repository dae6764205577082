# Overview: Read-only aggregate queries behind the dashboard, product list and movement log.

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import Product, Movement, Zone, UserSettings
from ..validation import ValidationError
from .concurrency import storage_guard

STOCK_IN = "in_stock"
STOCK_LOW = "low_stock"
STOCK_OUT = "out_of_stock"
STOCK_STATUSES = (STOCK_IN, STOCK_LOW, STOCK_OUT)

RECENT_ACTIVITY_LIMIT = 10
DEFAULT_MOVEMENT_LIMIT = 50
MAX_MOVEMENT_LIMIT = 1000


def classify_stock(product) -> str:
    """
    Three-way stock status.

    - out_of_stock: current_stock == 0 (whatever min_stock is)
    - low_stock:    0 < current_stock <= min_stock (equality counts as low)
    - in_stock:     current_stock > min_stock

    stock_status_clause() is the SQL twin of this function; keep them in step.
    """
    current = product.current_stock or 0
    minimum = product.min_stock or 0
    if current == 0:
        return STOCK_OUT
    if current <= minimum:
        return STOCK_LOW
    return STOCK_IN


def stock_status_clause(status: str):
    """SQL filter matching classify_stock(product) == status."""
    current = func.coalesce(Product.current_stock, 0)
    minimum = func.coalesce(Product.min_stock, 0)
    if status == STOCK_OUT:
        return current == 0
    if status == STOCK_LOW:
        return and_(current > 0, current <= minimum)
    if status == STOCK_IN:
        return and_(current > 0, current > minimum)
    raise ValidationError(f"status must be one of: {', '.join(STOCK_STATUSES)}", "status")


def serialize_product(product: Product) -> dict:
    data = product.to_dict()
    data["stock_status"] = classify_stock(product)
    data["stock_value_cents"] = (product.current_stock or 0) * (product.unit_price_cents or 0)
    return data


def _like_substring(text: str) -> str:
    """Substring LIKE pattern with % and _ in text matched literally (escape char is a backslash)."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _parse_bool_arg(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def parse_int_arg(args: Mapping, key: str) -> int | None:
    raw = args.get(key)
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{key} must be an integer", key)


@dataclass(frozen=True)
class ProductFilters:
    """
    Recognized product list filters. Anything not listed here is ignored.

    status "all" (or empty) means no stock-status filter.
    """
    category: str | None = None
    zone_id: int | None = None
    status: str | None = None
    search: str | None = None
    include_inactive: bool = False

    def __post_init__(self):
        if self.status is not None and self.status not in STOCK_STATUSES:
            raise ValidationError(
                f"status must be one of: all, {', '.join(STOCK_STATUSES)}", "status"
            )

    @classmethod
    def from_args(cls, args: Mapping) -> "ProductFilters":
        status = (args.get("status") or "").strip().lower() or None
        if status == "all":
            status = None
        # zoneId is accepted for clients written against the camelCase API
        zone_key = "zone_id" if args.get("zone_id") not in (None, "") else "zoneId"
        return cls(
            category=(args.get("category") or "").strip() or None,
            zone_id=parse_int_arg(args, zone_key),
            status=status,
            search=(args.get("search") or "").strip() or None,
            include_inactive=_parse_bool_arg(args.get("include_inactive")),
        )


@storage_guard
def filter_products(filters: ProductFilters | None = None) -> list[Product]:
    """
    Product listing with typed filters, ordered by name.

    search is a case-insensitive substring match on name, product_code or
    category (any of them). Inactive products are excluded unless asked for.
    """
    filters = filters or ProductFilters()
    query = db.session.query(Product).options(joinedload(Product.zone))

    if not filters.include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if filters.category:
        query = query.filter(Product.category == filters.category)
    if filters.zone_id is not None:
        query = query.filter(Product.zone_id == filters.zone_id)
    if filters.search:
        pattern = _like_substring(filters.search)
        query = query.filter(
            or_(
                Product.name.ilike(pattern, escape="\\"),
                Product.product_code.ilike(pattern, escape="\\"),
                Product.category.ilike(pattern, escape="\\"),
            )
        )
    if filters.status:
        query = query.filter(stock_status_clause(filters.status))

    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def _validate_limit(limit) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError("limit must be an integer", "limit")
    if limit < 1 or limit > MAX_MOVEMENT_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_MOVEMENT_LIMIT}", "limit")
    return limit


@storage_guard
def list_movements(*, product_id: int | None = None, limit: int = DEFAULT_MOVEMENT_LIMIT) -> list[Movement]:
    """Newest-first movement log with product and (nullable) user loaded."""
    limit = _validate_limit(limit)
    query = db.session.query(Movement).options(
        joinedload(Movement.product),
        joinedload(Movement.user),
    )
    if product_id is not None:
        query = query.filter(Movement.product_id == product_id)

    return (
        query.order_by(Movement.created_at.desc(), Movement.id.desc())
        .limit(limit)
        .all()
    )


def _utilization_pct(item_count: int, capacity: int) -> float | None:
    if not capacity:
        return None
    return round(min(item_count / capacity * 100, 100.0), 1)


@storage_guard
def zone_status() -> list[dict]:
    """
    One row per zone (ordered by name) with the number of active products
    assigned to it. Empty zones report item_count = 0.
    """
    rows = (
        db.session.query(Zone, func.count(Product.id).label("item_count"))
        .outerjoin(
            Product,
            and_(Product.zone_id == Zone.id, Product.is_active.is_(True)),
        )
        .group_by(Zone.id)
        .order_by(Zone.name.asc(), Zone.id.asc())
        .all()
    )
    result = []
    for zone, item_count in rows:
        data = zone.to_dict()
        data["item_count"] = int(item_count or 0)
        data["utilization_pct"] = _utilization_pct(data["item_count"], data["capacity"])
        result.append(data)
    return result


@storage_guard
def _count_active(*criteria) -> int:
    q = db.session.query(func.count(Product.id)).filter(Product.is_active.is_(True), *criteria)
    return int(q.scalar() or 0)


@storage_guard
def total_stock_value_cents() -> int:
    """SUM(current_stock * unit_price_cents) over active products; null prices count as 0."""
    q = db.session.query(
        func.coalesce(
            func.sum(
                func.coalesce(Product.current_stock, 0) * func.coalesce(Product.unit_price_cents, 0)
            ),
            0,
        )
    ).filter(Product.is_active.is_(True))
    return int(q.scalar() or 0)


def _display_block(settings: UserSettings | None) -> dict | None:
    if settings is None:
        return None
    return {
        "currency": settings.currency,
        "currency_symbol": settings.currency_symbol,
        "locale": settings.locale,
        "date_format": settings.date_format,
        "low_stock_threshold": settings.low_stock_threshold,
    }


def dashboard_metrics(*, settings: UserSettings | None = None) -> dict:
    """
    Point-in-time dashboard numbers. Counts and value cover active products
    only; recent activity and zone status come from the shared queries above.
    """
    recent = list_movements(limit=RECENT_ACTIVITY_LIMIT)
    return {
        "total_items": _count_active(),
        "low_stock_items": _count_active(stock_status_clause(STOCK_LOW)),
        "out_of_stock_items": _count_active(stock_status_clause(STOCK_OUT)),
        "total_value_cents": total_stock_value_cents(),
        "recent_activities": [m.to_dict(include_relations=True) for m in recent],
        "zone_status": zone_status(),
        "display": _display_block(settings),
    }
