from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from . import models


def get_vehicle(db: Session, vehicle_id: Optional[str]) -> Optional[models.Vehicle]:
    if not vehicle_id:
        return None
    return db.query(models.Vehicle).filter(models.Vehicle.id == str(vehicle_id)).first()


def vehicle_exists(db: Session, vehicle_id: Optional[str]) -> bool:
    if not vehicle_id:
        return False
    return (
        db.query(models.Vehicle.id)
        .filter(models.Vehicle.id == str(vehicle_id))
        .first()
        is not None
    )


def lock_vehicle_row(db: Session, vehicle_id: str) -> Optional[models.Vehicle]:
    """
    Take a row lock on the vehicle for the rest of the transaction.

    On PostgreSQL this serializes inspection creation for one vehicle across
    API processes. SQLite does not render FOR UPDATE; there the in-process
    `VehicleLockRegistry` is the only serialization point.
    """
    return (
        db.query(models.Vehicle)
        .filter(models.Vehicle.id == str(vehicle_id))
        .with_for_update()
        .first()
    )


def list_vehicles(
    db: Session,
    *,
    active_only: bool = True,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Vehicle]:
    q = db.query(models.Vehicle)
    if active_only:
        q = q.filter(models.Vehicle.is_active.is_(True))
    return q.order_by(models.Vehicle.unit_number.asc()).offset(skip).limit(limit).all()
