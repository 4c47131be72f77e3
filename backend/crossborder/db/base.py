# backend/crossborder/db/base.py

"""
Single source of truth for the SQLAlchemy Declarative Base.

IMPORTANT:
- This file must NOT import crossborder.models.
  Doing so creates circular imports (models -> base -> models).
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass
