"""
Inspections (DVIR) API.

- Create: inspector submits a DVIR; carried-over defects and severity
  escalation are applied server-side and cannot be supplied by the client.
- Read: list / detail for managers and reporting.
- Review: fleet managers review and approve.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from ...security import get_access_policy, get_current_active_user
from dvirdb.apps.accounts.models import User
from dvirdb.apps.accounts.policy import AccessPolicy, Capability

from . import models, review, schemas, services

router = APIRouter(
    prefix="/inspections",
    tags=["inspections"],
    dependencies=[Depends(get_current_active_user)],
)


@router.get("/", response_model=List[schemas.InspectionRead])
def list_inspections(
    skip: int = 0,
    limit: int = 100,
    vehicle_id: Optional[str] = None,
    status: Optional[models.InspectionStatusEnum] = None,
    inspection_type: Optional[models.InspectionTypeEnum] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    policy.require(current_user, Capability.READ)
    return services.list_inspections(
        db,
        vehicle_id=vehicle_id,
        status=status,
        inspection_type=inspection_type,
        skip=skip,
        limit=limit,
    )


@router.get("/{inspection_id}", response_model=schemas.InspectionRead)
def get_inspection(
    inspection_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    policy.require(current_user, Capability.READ)
    return services.get_inspection(db, inspection_id)


@router.post(
    "/",
    response_model=schemas.InspectionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_inspection(
    payload: schemas.InspectionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    inspection = services.create_inspection(
        db,
        vehicle_id=payload.vehicle_id,
        inspector_id=payload.inspector_id or current_user.id,
        inspection_type=payload.inspection_type,
        checklist_items=payload.checklist_items,
        new_defects=payload.new_defects,
        submitted_safe_to_operate=payload.safe_to_operate,
        odometer_reading=payload.odometer_reading,
        inspected_at=payload.inspected_at,
        inspector_signature=payload.inspector_signature,
        inspector_notes=payload.inspector_notes,
        actor=current_user,
        policy=policy,
    )
    db.refresh(inspection)
    return inspection


@router.post("/{inspection_id}/review", response_model=schemas.InspectionRead)
def review_inspection(
    inspection_id: str,
    payload: schemas.InspectionReview,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    inspection = review.review_inspection(
        db,
        inspection_id=inspection_id,
        reviewer=current_user,
        decision=payload.decision,
        notes=payload.notes,
        policy=policy,
    )
    db.refresh(inspection)
    return inspection
