from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z


class UserSettings(db.Model):
    """
    Per-user display preferences.

    These values only shape presentation (currency symbol, date format,
    the threshold a UI highlights). Stock classification never reads them.
    """
    __tablename__ = "user_settings"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_user_settings_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    currency = db.Column(db.String(3), nullable=False, default="USD")
    currency_symbol = db.Column(db.String(8), nullable=False, default="$")
    locale = db.Column(db.String(16), nullable=False, default="en-US")
    date_format = db.Column(db.String(16), nullable=False, default="MM/DD/YYYY")
    theme = db.Column(db.String(16), nullable=False, default="light")

    notifications = db.Column(db.Boolean, nullable=False, default=True)
    email_notifications = db.Column(db.Boolean, nullable=False, default=False)

    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("settings", uselist=False))

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "currency": self.currency,
            "currency_symbol": self.currency_symbol,
            "locale": self.locale,
            "date_format": self.date_format,
            "theme": self.theme,
            "notifications": self.notifications,
            "email_notifications": self.email_notifications,
            "low_stock_threshold": self.low_stock_threshold,
            "updated_at": to_utc_z(self.updated_at),
        }
