from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data plus its current stock level.

    STOCK OWNERSHIP:
    current_stock is owned by the product row but only the stock ledger
    (services/stock_service.py) may change it after creation. Every change
    appends a Movement in the same DB transaction, so current_stock always
    equals the new_stock of the product's newest movement.

    PRODUCT CODE:
    product_code is the human-assigned external identifier (globally unique).
    id is the surrogate key used by foreign keys and URLs.

    SOFT DELETE:
    Deleting a product flips is_active to False. Rows are never removed so
    movement history keeps its product reference.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("product_code", name="uq_products_product_code"),
        db.CheckConstraint("current_stock >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("min_stock >= 0", name="ck_products_min_stock_non_negative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_code = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(100), nullable=False)

    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=True, index=True)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    # Fixed-point minor units; never a float
    unit_price_cents = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Optimistic lock: concurrent stock updates on SQLite (no FOR UPDATE)
    # fail with StaleDataError instead of silently losing an update.
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # Zone deletes never null out products; zone_service detaches inactive ones explicitly
    zone = db.relationship("Zone", backref=db.backref("products", lazy=True, passive_deletes="all"))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.product_code!r} stock={self.current_stock}>"

    def to_dict(self, *, include_zone: bool = True) -> dict:
        data = {
            "id": self.id,
            "product_code": self.product_code,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "zone_id": self.zone_id,
            "current_stock": self.current_stock,
            "min_stock": self.min_stock,
            "unit_price_cents": self.unit_price_cents,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_zone:
            data["zone"] = self.zone.to_dict() if self.zone else None
        return data


class Movement(db.Model):
    """
    Append-only stock ledger entry.

    Invariants:
    - type is IN or OUT, quantity > 0
    - new_stock = previous_stock + quantity (IN) or previous_stock - quantity (OUT)
    - rows are never updated or deleted
    """
    __tablename__ = "movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),
        db.CheckConstraint("type IN ('IN', 'OUT')", name="ck_movements_type"),
        db.CheckConstraint("new_stock >= 0", name="ck_movements_new_stock_non_negative"),
        db.Index("ix_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(20), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(100), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Python-side default keeps sub-second ordering for newest-first listings
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))
    user = db.relationship("User")

    def to_dict(self, *, include_relations: bool = False) -> dict:
        data = {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "reason": self.reason,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_relations:
            data["product"] = self.product.to_dict(include_zone=False) if self.product else None
            data["user"] = self.user.to_public_dict() if self.user else None
        return data
