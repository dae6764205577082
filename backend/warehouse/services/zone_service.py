# Overview: Service-layer operations for zones; plain CRUD with referential checks.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Zone, Product
from ..validation import NotFoundError, ConflictError
from .concurrency import storage_guard

ZONE_MUTABLE_FIELDS = {"name", "description", "capacity"}


class ZoneNotFoundError(NotFoundError):
    def __init__(self, zone_id):
        super().__init__(f"Zone {zone_id} not found")
        self.zone_id = zone_id


def apply_zone_patch(zone: Zone, patch: dict) -> None:
    for k, v in patch.items():
        if k not in ZONE_MUTABLE_FIELDS:
            continue
        setattr(zone, k, v)


@storage_guard
def list_zones() -> list[Zone]:
    return db.session.query(Zone).order_by(Zone.name.asc(), Zone.id.asc()).all()


@storage_guard
def get_zone(zone_id: int) -> Zone:
    zone = db.session.get(Zone, zone_id)
    if zone is None:
        raise ZoneNotFoundError(zone_id)
    return zone


def create_zone(*, patch: dict) -> Zone:
    zone = Zone(capacity=0)
    apply_zone_patch(zone, patch)
    if zone.capacity is None:
        zone.capacity = 0
    db.session.add(zone)
    db.session.commit()
    return zone


def update_zone(*, zone_id: int, patch: dict) -> Zone:
    zone = get_zone(zone_id)
    apply_zone_patch(zone, patch)
    if zone.capacity is None:
        zone.capacity = 0
    db.session.commit()
    return zone


def _active_product_count(zone_id: int) -> int:
    return (
        db.session.query(db.func.count(Product.id))
        .filter(Product.zone_id == zone_id, Product.is_active.is_(True))
        .scalar()
    )


def _zone_in_use(zone_id: int, active_count: int) -> ConflictError:
    return ConflictError(
        f"Zone {zone_id} still has {active_count} active product(s); reassign them first"
    )


def delete_zone(*, zone_id: int) -> None:
    """
    Hard-delete a zone.

    Refused while active products reference it. Inactive (soft-deleted)
    products are detached first so no product points at a missing zone.
    The count is repeated after the delete is flushed, when this
    transaction holds the write lock, so a product assigned in between
    still yields a ConflictError.
    """
    zone = get_zone(zone_id)

    active_count = _active_product_count(zone.id)
    if active_count:
        raise _zone_in_use(zone.id, active_count)

    try:
        db.session.query(Product).filter(
            Product.zone_id == zone.id,
            Product.is_active.is_(False),
        ).update({Product.zone_id: None}, synchronize_session="fetch")

        db.session.delete(zone)
        db.session.flush()

        active_count = _active_product_count(zone_id)
        if active_count:
            db.session.rollback()
            raise _zone_in_use(zone_id, active_count)

        db.session.commit()
    except IntegrityError as exc:
        # Foreign key rejected the delete: a product was assigned meanwhile
        db.session.rollback()
        raise ConflictError(f"Zone {zone_id} is still referenced by products") from exc
