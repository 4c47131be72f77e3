# backend/crossborder/services/fleet.py
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Iterable, Optional

from crossborder.models import License, Permit, Vehicle
from crossborder.services.formatting import as_aware_utc, utcnow

EXPIRY_WARNING = timedelta(days=30)


def is_expiring(expiry: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Expiry falls in (now, now + 30 days]."""
    if expiry is None:
        return False
    now = as_aware_utc(now) or utcnow()
    expiry = as_aware_utc(expiry)
    return now < expiry <= now + EXPIRY_WARNING


def expiry_info(expiry: datetime, now: Optional[datetime] = None) -> dict:
    now = as_aware_utc(now) or utcnow()
    expiry = as_aware_utc(expiry)
    days = math.ceil((expiry - now).total_seconds() / 86400)
    return {
        "is_expiring": is_expiring(expiry, now),
        "is_expired": expiry <= now,
        "days_until_expiry": days,
    }


def _count_expiring(items: Iterable, now: datetime) -> int:
    return sum(1 for item in items if is_expiring(item.expiry_date, now))


def document_to_dict(doc: Permit | License, now: Optional[datetime] = None) -> dict:
    is_permit = isinstance(doc, Permit)
    data = {
        "id": doc.id,
        "vehicle_id": doc.vehicle_id,
        "type": doc.permit_type if is_permit else doc.license_type,
        "number": doc.permit_number if is_permit else doc.license_number,
        "issuing_authority": doc.issuing_authority,
        "start_date": as_aware_utc(doc.start_date).isoformat(),
        "expiry_date": as_aware_utc(doc.expiry_date).isoformat(),
        "file_url": doc.file_url,
        "file_name": doc.file_name,
        "notes": doc.notes,
        "status": doc.status,
    }
    data.update(expiry_info(doc.expiry_date, now))
    return data


def vehicle_to_dict(vehicle: Vehicle, now: Optional[datetime] = None, *, with_documents: bool = False) -> dict:
    now = as_aware_utc(now) or utcnow()
    expiring_permits = _count_expiring(vehicle.permits, now)
    expiring_licenses = _count_expiring(vehicle.licenses, now)

    data = {
        "id": vehicle.id,
        "driver_id": vehicle.driver_id,
        "make": vehicle.make,
        "model": vehicle.model,
        "year": vehicle.year,
        "color": vehicle.color,
        "plate_number": vehicle.plate_number,
        "vin": vehicle.vin,
        "vehicle_type": vehicle.vehicle_type,
        "capacity": vehicle.capacity,
        "is_active": bool(vehicle.is_active),
        "features": vehicle.features or [],
        "fuel_type": vehicle.fuel_type,
        "insurance_expiry": as_aware_utc(vehicle.insurance_expiry).isoformat() if vehicle.insurance_expiry else None,
        "inspection_expiry": as_aware_utc(vehicle.inspection_expiry).isoformat() if vehicle.inspection_expiry else None,
        "photos": vehicle.photos or [],
        "has_expiring_documents": bool(expiring_permits or expiring_licenses),
        "expiring_permits": expiring_permits,
        "expiring_licenses": expiring_licenses,
    }
    if with_documents:
        data["permits"] = [document_to_dict(p, now) for p in vehicle.permits]
        data["licenses"] = [document_to_dict(lic, now) for lic in vehicle.licenses]
    return data
