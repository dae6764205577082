# Overview: Per-user display settings (currency, locale, theme, thresholds).

from __future__ import annotations

from ..extensions import db
from ..models import UserSettings

SETTINGS_MUTABLE_FIELDS = {
    "currency",
    "currency_symbol",
    "locale",
    "date_format",
    "theme",
    "notifications",
    "email_notifications",
    "low_stock_threshold",
}

# Symbol used when a client changes currency without sending one
DEFAULT_CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
    "CAD": "C$",
    "AUD": "A$",
}


def get_user_settings(user_id: int) -> UserSettings:
    """Return the user's settings row, creating it with defaults on first access."""
    settings = db.session.query(UserSettings).filter_by(user_id=user_id).first()
    if settings is not None:
        return settings

    settings = UserSettings(
        user_id=user_id,
        currency="USD",
        currency_symbol="$",
        locale="en-US",
        date_format="MM/DD/YYYY",
        theme="light",
        notifications=True,
        email_notifications=False,
        low_stock_threshold=10,
    )
    db.session.add(settings)
    db.session.commit()
    return settings


def update_user_settings(*, user_id: int, patch: dict) -> UserSettings:
    settings = get_user_settings(user_id)

    if "currency" in patch and "currency_symbol" not in patch:
        symbol = DEFAULT_CURRENCY_SYMBOLS.get(patch["currency"])
        if symbol:
            patch = {**patch, "currency_symbol": symbol}

    for k, v in patch.items():
        if k in SETTINGS_MUTABLE_FIELDS:
            setattr(settings, k, v)

    db.session.commit()
    return settings
