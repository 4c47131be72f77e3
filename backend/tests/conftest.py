# backend/tests/conftest.py
"""
Shared fixtures: the real app wired to a fresh in-memory SQLite database
per test, plus small factories for users and session tokens.

StaticPool keeps the single in-memory connection alive across the
per-request sessions FastAPI opens.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Iterable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crossborder.core.rate_limit import reset_rate_limits
from crossborder.core.security import create_access_token, hash_password, session_claims
from crossborder.db.base import Base
from crossborder.db.session import get_db
from crossborder.main import app as main_app
from crossborder.models import (
    BlogEditorProfile,
    ClientProfile,
    DriverProfile,
    Role,
    User,
    UserRole,
    Vehicle,
)
from crossborder.services.formatting import utcnow

PASSWORD = "Passw0rd!"


@pytest.fixture()
def SessionLocal():
    engine = create_engine(
        "sqlite+pysqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture()
def db(SessionLocal):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(SessionLocal):
    def _override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    reset_rate_limits()
    main_app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(main_app)
    finally:
        main_app.dependency_overrides.clear()
        reset_rate_limits()


def make_user(
    db,
    email: str,
    roles: Iterable[str] = (Role.CLIENT.value,),
    *,
    name: str = "Test User",
    password: str = PASSWORD,
    is_active: bool = True,
    driver_approved: bool = True,
    license_number: Optional[str] = None,
) -> User:
    """Create a user holding `roles`, with the profile each role needs."""
    user = User(
        email=email,
        name=name,
        hashed_password=hash_password(password),
        is_active=is_active,
        is_verified=True,
    )
    for role in roles:
        user.roles.append(UserRole(role=role, is_active=True))
        if role == Role.CLIENT.value:
            user.client_profile = ClientProfile()
        elif role == Role.DRIVER.value:
            user.driver_profile = DriverProfile(
                license_number=license_number or f"LIC-{email}",
                license_expiry=utcnow() + timedelta(days=365),
                languages=["English", "Cantonese"],
                is_approved=driver_approved,
                is_available=True,
                rating=4.5,
            )
        elif role == Role.BLOG_EDITOR.value:
            user.editor_profile = BlogEditorProfile(is_approved=True, permissions=[])

    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_vehicle(db, driver: DriverProfile, plate: str = "HK1234", vehicle_type: str = "BUSINESS") -> Vehicle:
    vehicle = Vehicle(
        driver_id=driver.id,
        make="Toyota",
        model="Alphard",
        year=2022,
        color="Black",
        plate_number=plate,
        vehicle_type=vehicle_type,
        capacity=6,
        is_active=True,
        features=[],
        photos=[],
    )
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return vehicle


def auth_headers(user: User, selected_role: Optional[str] = None) -> dict:
    roles = [r.role for r in user.roles if r.is_active]
    token = create_access_token(session_claims(user, roles, selected_role or (roles[0] if roles else None)))
    return {"Authorization": f"Bearer {token}"}
