"""
Defect ledger API.

- Listing and lookup for managers and reporting.
- Outstanding (uncorrected) defects per vehicle for driver tooling.
- Standalone defect creation against an existing inspection.
- Status changes: in progress, corrected, deferred, reopened.
- Administrative hard delete (ADMIN only).

Domain errors are mapped to HTTP responses by the handlers in
`dvirdb.main`.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from ...security import get_access_policy, get_current_active_user
from dvirdb.apps.accounts.models import User
from dvirdb.apps.accounts.policy import AccessPolicy, Capability
from dvirdb.errors import DVIRError
from dvirdb.transactions import commit_or_fail, storage_failure

from . import models, schemas, services

router = APIRouter(
    prefix="/defects",
    tags=["defects"],
    dependencies=[Depends(get_current_active_user)],
)


@router.get("/", response_model=List[schemas.DefectRead])
def list_defects(
    skip: int = 0,
    limit: int = 100,
    vehicle_id: Optional[str] = None,
    status: Optional[models.DefectStatus] = None,
    severity: Optional[models.DefectSeverity] = None,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    policy.require(current_user, Capability.READ)
    return services.list_defects(
        db,
        vehicle_id=vehicle_id,
        status=status,
        severity=severity,
        skip=skip,
        limit=limit,
    )


@router.get("/uncorrected", response_model=schemas.UncorrectedDefectsRead)
def get_uncorrected_defects(
    vehicle_id: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    """
    Outstanding defects for a vehicle, oldest first.

    Reads the primary: a driver checking before departure must see a
    correction or a new defect recorded seconds ago.
    """
    defects, count = services.get_uncorrected_defects(
        db,
        vehicle_id,
        actor=current_user,
        policy=policy,
    )
    return {"vehicle_id": vehicle_id, "count": count, "defects": defects}


@router.get("/{defect_id}", response_model=schemas.DefectRead)
def get_defect(
    defect_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    policy.require(current_user, Capability.READ)
    return services.get_defect(db, defect_id)


@router.post(
    "/",
    response_model=schemas.DefectRead,
    status_code=status.HTTP_201_CREATED,
)
def create_defect(
    payload: schemas.DefectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    try:
        defect = services.create_defect(
            db,
            vehicle_id=payload.vehicle_id,
            origin_inspection_id=payload.origin_inspection_id,
            description=payload.description,
            severity=payload.severity,
            location=payload.location,
            identified_by=payload.identified_by_user_id or current_user.id,
            identified_at=payload.identified_at,
            actor=current_user,
            policy=policy,
        )
    except DVIRError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, operation="defect create") from exc
    commit_or_fail(db, operation="defect create", entity_id=defect.id)
    db.refresh(defect)
    return defect


@router.post("/{defect_id}/status", response_model=schemas.DefectRead)
def update_defect_status(
    defect_id: str,
    payload: schemas.DefectStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    defect = services.update_defect_status(
        db,
        defect_id=defect_id,
        new_status=payload.status,
        actor=current_user,
        correction_notes=payload.correction_notes,
        corrected_at=payload.corrected_at,
        deferral_reason=payload.deferral_reason,
        deferral_approver=payload.deferral_approved_by_user_id,
        policy=policy,
    )
    db.refresh(defect)
    return defect


@router.post("/{defect_id}/mark-corrected", response_model=schemas.DefectRead)
def mark_corrected(
    defect_id: str,
    payload: schemas.DefectMarkCorrected,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    defect = services.mark_corrected(
        db,
        defect_id=defect_id,
        actor=current_user,
        correction_notes=payload.correction_notes,
        corrected_at=payload.corrected_at,
        policy=policy,
    )
    db.refresh(defect)
    return defect


@router.delete("/{defect_id}", status_code=status.HTTP_204_NO_CONTENT)
def hard_delete_defect(
    defect_id: str,
    reason: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    policy: AccessPolicy = Depends(get_access_policy),
):
    services.hard_delete_defect(
        db,
        defect_id=defect_id,
        actor=current_user,
        reason=reason,
        policy=policy,
    )
    return None
