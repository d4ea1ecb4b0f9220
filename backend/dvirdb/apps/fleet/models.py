"""
Fleet data models.

Scope of this app:
- Vehicle master data, as mirrored from the vehicle registry.

The registry is the authority on which vehicles exist. The inspection
engine only reads vehicle ids and takes a row lock on the vehicle while it
creates an inspection for it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from ...database import Base
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Vehicle(Base):
    """
    A bus, coach or limo in the fleet.

    `unit_number` is the fleet number painted on the vehicle and is what
    drivers quote; `id` is the registry key every other table references.
    """

    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    unit_number = Column(String(32), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    vin = Column(String(17), nullable=True, unique=True)
    seating_capacity = Column(Integer, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<Vehicle id={self.id} unit={self.unit_number}>"
