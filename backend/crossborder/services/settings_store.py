# backend/crossborder/services/settings_store.py
"""
Admin-editable platform settings.

Each section (general, notifications, ...) is one SystemSetting row holding
a JSON object. Stored keys override DEFAULT_SETTINGS per section, so a new
default key shows up without a migration.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from crossborder.models import SystemSetting, User
from crossborder.services.formatting import as_aware_utc, utcnow

logger = logging.getLogger("crossborder.security")

DEFAULT_SETTINGS: Dict[str, Dict[str, Any]] = {
    "general": {
        "site_name": "CrossBorder Transportation",
        "site_description": "Professional cross-border transportation services between Hong Kong and Shenzhen",
        "maintenance_mode": False,
        "registration_enabled": True,
        "email_verification_required": True,
    },
    "notifications": {
        "email_notifications": True,
        "sms_notifications": True,
        "push_notifications": False,
        "admin_alerts": True,
    },
    "security": {
        "session_timeout": 30,  # minutes
        "password_min_length": 8,
        "two_factor_required": False,
        "ip_whitelist": ["127.0.0.1", "10.0.0.0/8"],
    },
    "payment": {
        "base_fare": 50.00,
        "price_per_km": 8.50,
        "price_per_minute": 2.50,
        "surcharge_weekend": 1.25,
        "surcharge_night": 1.50,
        "cancellation_fee": 25.00,
    },
    "features": {
        "real_time_tracking": True,
        "schedule_bookings": True,
        "multiple_stops": True,
        "car_sharing_mode": False,
        "loyalty_program": True,
    },
}

SECTIONS = tuple(DEFAULT_SETTINGS.keys())


class SettingsError(ValueError):
    pass


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def validate_settings(settings: Any) -> None:
    """Raises SettingsError with the first problem found."""
    if not settings or not isinstance(settings, dict):
        raise SettingsError("Invalid settings data")

    for section in SECTIONS:
        if not settings.get(section):
            raise SettingsError(f"Missing required section: {section}")
        if not isinstance(settings[section], dict):
            raise SettingsError("Invalid settings data")

    security = settings["security"]
    timeout = _number(security.get("session_timeout"))
    if timeout is not None and not 5 <= timeout <= 480:
        raise SettingsError("Session timeout must be between 5 and 480 minutes")

    min_len = _number(security.get("password_min_length"))
    if min_len is not None and not 6 <= min_len <= 50:
        raise SettingsError("Password minimum length must be between 6 and 50 characters")

    payment = settings["payment"]
    for key in ("base_fare", "price_per_km"):
        value = _number(payment.get(key))
        if value is not None and value < 0:
            raise SettingsError("Payment rates cannot be negative")


def _rows(db: Session) -> Dict[str, SystemSetting]:
    rows = db.query(SystemSetting).filter(SystemSetting.key.in_(SECTIONS)).all()
    return {r.key: r for r in rows}


def load_settings(db: Session) -> Tuple[Dict[str, Dict[str, Any]], Optional[datetime], Optional[int]]:
    """Merged settings plus when and by whom they were last changed."""
    merged = copy.deepcopy(DEFAULT_SETTINGS)
    last_updated: Optional[datetime] = None
    updated_by: Optional[int] = None

    for key, row in _rows(db).items():
        if isinstance(row.value, dict):
            merged[key].update(row.value)
        stamp = as_aware_utc(row.updated_at)
        if stamp and (last_updated is None or stamp > last_updated):
            last_updated = stamp
            updated_by = row.updated_by

    return merged, last_updated, updated_by


def _save_section(db: Session, rows: Dict[str, SystemSetting], section: str, value: dict, user: User) -> None:
    row = rows.get(section)
    if row is None:
        row = SystemSetting(key=section, description=f"{section} settings")
        db.add(row)
    # reassign so the JSON column is flagged dirty
    row.value = dict(value)
    row.updated_by = user.id
    row.updated_at = utcnow()


def replace_settings(db: Session, settings: Any, user: User) -> Dict[str, Dict[str, Any]]:
    validate_settings(settings)
    rows = _rows(db)
    for section in SECTIONS:
        _save_section(db, rows, section, settings[section], user)
    db.commit()

    logger.info("settings_replaced by_user_id=%s", user.id)
    merged, _, _ = load_settings(db)
    return merged


def update_section(db: Session, section: Any, data: Any, user: User) -> Dict[str, Any]:
    if not section or not data:
        raise SettingsError("Section and data are required")
    if section not in SECTIONS:
        raise SettingsError(f"Unknown settings section: {section}")
    if not isinstance(data, dict):
        raise SettingsError("Invalid settings data")

    merged, _, _ = load_settings(db)
    merged[section].update(data)
    validate_settings(merged)

    _save_section(db, _rows(db), section, merged[section], user)
    db.commit()

    logger.info("settings_section_updated section=%s by_user_id=%s", section, user.id)
    return merged[section]
