# backend/crossborder/api/v1/driver_vehicles.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from crossborder.api.deps import require_driver_profile
from crossborder.core.errors import bad_request, conflict, not_found, reject_nulls
from crossborder.db.session import get_db
from crossborder.models import DriverProfile, License, NotificationType, Permit, Trip, TripStatus, Vehicle, VehicleType
from crossborder.services.fleet import document_to_dict, is_expiring, vehicle_to_dict
from crossborder.services.formatting import as_aware_utc
from crossborder.services.notifications import notify

logger = logging.getLogger("crossborder")

router = APIRouter(prefix="/drivers/vehicles", tags=["drivers"])

REQUIRED_VEHICLE_FIELDS = (
    "make", "model", "year", "color", "plate_number", "vehicle_type", "capacity", "is_active", "features", "photos",
)


class VehicleCreate(BaseModel):
    make: str = Field(..., min_length=1, max_length=64)
    model: str = Field(..., min_length=1, max_length=64)
    year: int = Field(..., ge=1980, le=2100)
    color: str = Field(..., min_length=1, max_length=32)
    plate_number: str = Field(..., min_length=1, max_length=32)
    vin: Optional[str] = Field(default=None, max_length=64)
    vehicle_type: VehicleType
    capacity: int = Field(..., ge=1, le=20)
    features: List[str] = Field(default_factory=list)
    fuel_type: Optional[str] = None
    insurance_expiry: Optional[datetime] = None
    inspection_expiry: Optional[datetime] = None
    photos: List[str] = Field(default_factory=list)


class VehicleUpdate(BaseModel):
    make: Optional[str] = Field(default=None, min_length=1, max_length=64)
    model: Optional[str] = Field(default=None, min_length=1, max_length=64)
    year: Optional[int] = Field(default=None, ge=1980, le=2100)
    color: Optional[str] = Field(default=None, min_length=1, max_length=32)
    plate_number: Optional[str] = Field(default=None, min_length=1, max_length=32)
    vin: Optional[str] = Field(default=None, max_length=64)
    vehicle_type: Optional[VehicleType] = None
    capacity: Optional[int] = Field(default=None, ge=1, le=20)
    is_active: Optional[bool] = None
    features: Optional[List[str]] = None
    fuel_type: Optional[str] = None
    insurance_expiry: Optional[datetime] = None
    inspection_expiry: Optional[datetime] = None
    photos: Optional[List[str]] = None


class _VehicleDocumentIn(BaseModel):
    issuing_authority: str = Field(..., min_length=1, max_length=255)
    start_date: datetime
    expiry_date: datetime
    file_url: Optional[str] = Field(default=None, max_length=1024)
    file_name: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None


class PermitIn(_VehicleDocumentIn):
    permit_type: str = Field(..., min_length=1, max_length=64)
    permit_number: str = Field(..., min_length=1, max_length=64)


class LicenseIn(_VehicleDocumentIn):
    license_type: str = Field(..., min_length=1, max_length=64)
    license_number: str = Field(..., min_length=1, max_length=64)


def _owned_vehicle(db: Session, driver: DriverProfile, vehicle_id: int) -> Vehicle:
    vehicle = (
        db.query(Vehicle)
        .filter(Vehicle.id == vehicle_id, Vehicle.driver_id == driver.id)
        .first()
    )
    if vehicle is None:
        raise not_found("Vehicle not found")
    return vehicle


def _check_unique(db: Session, plate_number: Optional[str], vin: Optional[str], exclude_id: Optional[int] = None) -> None:
    if plate_number:
        q = db.query(Vehicle).filter(Vehicle.plate_number == plate_number)
        if exclude_id is not None:
            q = q.filter(Vehicle.id != exclude_id)
        if q.first() is not None:
            raise conflict("Vehicle with this plate number already exists")
    if vin:
        q = db.query(Vehicle).filter(Vehicle.vin == vin)
        if exclude_id is not None:
            q = q.filter(Vehicle.id != exclude_id)
        if q.first() is not None:
            raise conflict("Vehicle with this VIN already exists")


def _normalize_plate(plate: Optional[str]) -> Optional[str]:
    return plate.strip().upper() if plate else plate


@router.get("")
def list_vehicles(
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    vehicles = (
        db.query(Vehicle)
        .filter(Vehicle.driver_id == driver.id)
        .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
        .all()
    )
    return {"vehicles": [vehicle_to_dict(v) for v in vehicles]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_vehicle(
    payload: VehicleCreate,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    plate = _normalize_plate(payload.plate_number)
    vin = (payload.vin or "").strip().upper() or None
    _check_unique(db, plate, vin)

    data = payload.model_dump()
    data.update(
        plate_number=plate,
        vin=vin,
        vehicle_type=payload.vehicle_type.value,
        insurance_expiry=as_aware_utc(payload.insurance_expiry),
        inspection_expiry=as_aware_utc(payload.inspection_expiry),
    )
    vehicle = Vehicle(driver_id=driver.id, is_active=True, **data)
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)

    logger.info("vehicle_created vehicle_id=%s driver_id=%s", vehicle.id, driver.id)
    return {"message": "Vehicle created successfully", "vehicle": vehicle_to_dict(vehicle)}


@router.get("/{vehicle_id}")
def get_vehicle(
    vehicle_id: int,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    vehicle = _owned_vehicle(db, driver, vehicle_id)
    return {"vehicle": vehicle_to_dict(vehicle, with_documents=True)}


@router.put("/{vehicle_id}")
def update_vehicle(
    vehicle_id: int,
    payload: VehicleUpdate,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    vehicle = _owned_vehicle(db, driver, vehicle_id)
    changes = payload.model_dump(exclude_unset=True)
    reject_nulls(changes, REQUIRED_VEHICLE_FIELDS)

    if "plate_number" in changes:
        changes["plate_number"] = _normalize_plate(changes["plate_number"])
    if "vin" in changes:
        changes["vin"] = (changes["vin"] or "").strip().upper() or None
    _check_unique(db, changes.get("plate_number"), changes.get("vin"), exclude_id=vehicle.id)

    if changes.get("vehicle_type") is not None:
        changes["vehicle_type"] = VehicleType(changes["vehicle_type"]).value
    for key in ("insurance_expiry", "inspection_expiry"):
        if key in changes:
            changes[key] = as_aware_utc(changes[key])

    for key, value in changes.items():
        setattr(vehicle, key, value)

    db.commit()
    db.refresh(vehicle)
    return {"message": "Vehicle updated successfully", "vehicle": vehicle_to_dict(vehicle)}


@router.delete("/{vehicle_id}")
def delete_vehicle(
    vehicle_id: int,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    vehicle = _owned_vehicle(db, driver, vehicle_id)

    live = (
        db.query(Trip)
        .filter(
            Trip.vehicle_id == vehicle.id,
            Trip.status.in_([TripStatus.ACCEPTED.value, TripStatus.IN_PROGRESS.value]),
        )
        .count()
    )
    if live:
        raise conflict("Cannot delete vehicle with active bookings. Please complete or cancel all bookings first.")

    db.delete(vehicle)
    db.commit()

    logger.info("vehicle_deleted vehicle_id=%s driver_id=%s", vehicle_id, driver.id)
    return {"message": "Vehicle deleted successfully"}


# === Permits & licenses ===

def _create_vehicle_document(
    db: Session,
    driver: DriverProfile,
    vehicle: Vehicle,
    model,
    payload: PermitIn | LicenseIn,
    label: str,
):
    """Shared create path for permits and licenses (`label` is "permit" or "license")."""
    start = as_aware_utc(payload.start_date)
    expiry = as_aware_utc(payload.expiry_date)
    if expiry <= start:
        raise bad_request("Expiry date must be after start date")

    type_field, number_field = f"{label}_type", f"{label}_number"
    doc_type = getattr(payload, type_field)
    doc_number = getattr(payload, number_field)

    duplicate = (
        db.query(model)
        .filter(
            model.vehicle_id == vehicle.id,
            getattr(model, type_field) == doc_type,
            getattr(model, number_field) == doc_number,
        )
        .first()
    )
    if duplicate is not None:
        raise conflict(f"{label.capitalize()} with this type and number already exists for this vehicle")

    doc = model(vehicle_id=vehicle.id, status="PENDING", **payload.model_dump())
    doc.start_date = start
    doc.expiry_date = expiry
    db.add(doc)

    if is_expiring(expiry):
        notify(
            db,
            driver.user_id,
            NotificationType.PERMIT_EXPIRING,
            f"{label.capitalize()} Expiring Soon",
            f"Your {doc_type.replace('_', ' ').lower()} {label} for {vehicle.make} {vehicle.model} "
            f"({vehicle.plate_number}) expires on {expiry.date().isoformat()}",
            {"vehicle_id": vehicle.id, type_field: doc_type},
        )

    db.commit()
    db.refresh(doc)
    return doc


@router.get("/{vehicle_id}/permits")
def list_permits(
    vehicle_id: int,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    vehicle = _owned_vehicle(db, driver, vehicle_id)
    return {"permits": [document_to_dict(p) for p in vehicle.permits]}


@router.post("/{vehicle_id}/permits", status_code=status.HTTP_201_CREATED)
def create_permit(
    vehicle_id: int,
    payload: PermitIn,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    vehicle = _owned_vehicle(db, driver, vehicle_id)
    permit = _create_vehicle_document(db, driver, vehicle, Permit, payload, "permit")
    return {"message": "Permit created successfully", "permit": document_to_dict(permit)}


@router.get("/{vehicle_id}/licenses")
def list_licenses(
    vehicle_id: int,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    vehicle = _owned_vehicle(db, driver, vehicle_id)
    return {"licenses": [document_to_dict(lic) for lic in vehicle.licenses]}


@router.post("/{vehicle_id}/licenses", status_code=status.HTTP_201_CREATED)
def create_license(
    vehicle_id: int,
    payload: LicenseIn,
    driver: DriverProfile = Depends(require_driver_profile),
    db: Session = Depends(get_db),
) -> dict:
    vehicle = _owned_vehicle(db, driver, vehicle_id)
    lic = _create_vehicle_document(db, driver, vehicle, License, payload, "license")
    return {"message": "License created successfully", "license": document_to_dict(lic)}
