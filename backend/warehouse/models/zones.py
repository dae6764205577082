from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z


class Zone(db.Model):
    """
    Named warehouse location that products are assigned to.

    Zones are hard-deleted. zone_service.delete_zone refuses while active
    products still reference the zone, so products.zone_id never dangles.
    """
    __tablename__ = "zones"
    __table_args__ = (
        db.Index("ix_zones_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Planned number of products the zone can hold; 0 means "not tracked"
    capacity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Zone id={self.id} name={self.name!r} capacity={self.capacity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "capacity": self.capacity or 0,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
