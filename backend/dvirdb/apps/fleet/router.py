"""
Vehicle registry API (read-only).

Vehicles are provisioned by the registry; this router only lets drivers and
managers look them up when starting an inspection.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...database import get_read_db
from ...security import get_current_active_user

from . import schemas, services

router = APIRouter(
    prefix="/vehicles",
    tags=["vehicles"],
    dependencies=[Depends(get_current_active_user)],
)


@router.get("/", response_model=List[schemas.VehicleRead])
def list_vehicles(
    skip: int = 0,
    limit: int = 100,
    include_inactive: bool = False,
    db: Session = Depends(get_read_db),
):
    return services.list_vehicles(
        db,
        active_only=not include_inactive,
        skip=skip,
        limit=limit,
    )


@router.get("/{vehicle_id}", response_model=schemas.VehicleRead)
def get_vehicle(
    vehicle_id: str,
    db: Session = Depends(get_read_db),
):
    vehicle = services.get_vehicle(db, vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle
