from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple, Union

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dvirdb.apps.accounts import services as account_services
from dvirdb.apps.accounts.models import User
from dvirdb.apps.accounts.policy import DEFAULT_POLICY, AccessPolicy, Capability
from dvirdb.apps.audit import services as audit_services
from dvirdb.apps.fleet import services as fleet_services
from dvirdb.apps.workflow import apply_transition
from dvirdb.errors import DVIRError, InvalidInput, NotFound
from dvirdb.transactions import commit_or_fail, flush_or_fail, storage_failure

from . import models

logger = logging.getLogger(__name__)

# Upper bound on unresolved defects read per vehicle during carry-over.
CARRY_OVER_QUERY_LIMIT = int(os.getenv("CARRY_OVER_QUERY_LIMIT", "1000"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_severity(value: Union[str, models.DefectSeverity, None]) -> models.DefectSeverity:
    if isinstance(value, models.DefectSeverity):
        return value
    try:
        return models.DefectSeverity(str(value).strip().lower())
    except ValueError:
        raise InvalidInput(
            f"Unknown defect severity {value!r}.",
            detail=[{"field": "severity", "reason": "must be critical, major or minor"}],
        )


def _coerce_status(value: Union[str, models.DefectStatus, None]) -> models.DefectStatus:
    if isinstance(value, models.DefectStatus):
        return value
    if _blank(value):
        raise InvalidInput.missing("status")
    try:
        return models.DefectStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidInput(
            f"Unknown defect status {value!r}.",
            detail=[{"field": "status", "reason": "must be open, in_progress, corrected or deferred"}],
        )


def snapshot(defect: models.Defect) -> dict:
    """JSON-safe view of the mutable part of a defect, for the audit trail."""
    return {
        "status": getattr(defect.status, "value", defect.status),
        "corrected_by_user_id": defect.corrected_by_user_id,
        "corrected_at": _iso(defect.corrected_at),
        "correction_notes": defect.correction_notes,
        "deferral_reason": defect.deferral_reason,
        "deferral_approved_by_user_id": defect.deferral_approved_by_user_id,
        "carried_over_count": defect.carried_over_count,
    }


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_defect(db: Session, defect_id: str) -> models.Defect:
    defect = db.query(models.Defect).filter(models.Defect.id == defect_id).first()
    if defect is None:
        raise NotFound(
            f"Defect {defect_id} not found.",
            detail=[{"field": "defect_id", "reason": "not found"}],
        )
    return defect


def list_defects(
    db: Session,
    *,
    vehicle_id: Optional[str] = None,
    status: Optional[models.DefectStatus] = None,
    severity: Optional[models.DefectSeverity] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Defect]:
    q = db.query(models.Defect)
    if vehicle_id:
        q = q.filter(models.Defect.vehicle_id == vehicle_id)
    if status:
        q = q.filter(models.Defect.status == status)
    if severity:
        q = q.filter(models.Defect.severity == severity)
    return (
        q.order_by(models.Defect.identified_at.desc(), models.Defect.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def list_unresolved(
    db: Session,
    vehicle_id: str,
    *,
    limit: int = CARRY_OVER_QUERY_LIMIT,
) -> List[models.Defect]:
    """
    Every defect on the vehicle that is not corrected, oldest first.

    Deferred defects are unresolved: deferral postpones the repair, it does
    not clear the defect.
    """
    return (
        db.query(models.Defect)
        .filter(
            models.Defect.vehicle_id == vehicle_id,
            models.Defect.status != models.DefectStatus.CORRECTED,
        )
        .order_by(models.Defect.identified_at.asc(), models.Defect.id.asc())
        .limit(limit)
        .all()
    )


def get_uncorrected_defects(
    db: Session,
    vehicle_id: Optional[str],
    *,
    actor: User,
    policy: AccessPolicy = DEFAULT_POLICY,
) -> Tuple[List[models.Defect], int]:
    """Outstanding defects for driver-facing tooling, with their count."""
    policy.require(actor, Capability.READ)
    if _blank(vehicle_id):
        raise InvalidInput.missing("vehicle_id")
    defects = list_unresolved(db, vehicle_id)
    return defects, len(defects)


# ---------------------------------------------------------------------------
# Ledger writes
# ---------------------------------------------------------------------------


def create_defect(
    db: Session,
    *,
    vehicle_id: Optional[str],
    origin_inspection_id: Optional[str],
    description: Optional[str],
    severity: Union[str, models.DefectSeverity, None],
    identified_by: Optional[str],
    identified_at: Optional[datetime] = None,
    location: Optional[str] = None,
    actor: User,
    policy: AccessPolicy = DEFAULT_POLICY,
) -> models.Defect:
    """
    Record a newly identified defect as OPEN with a zero carry-over count.

    Flushes but does not commit: the caller owns the transaction (the
    inspection pipeline creates defects inside its own).
    """
    policy.require(actor, Capability.INSPECT)

    missing = [
        name
        for name, value in (
            ("vehicle_id", vehicle_id),
            ("origin_inspection_id", origin_inspection_id),
            ("description", description),
            ("severity", severity),
            ("identified_by", identified_by),
        )
        if _blank(value)
    ]
    if missing:
        raise InvalidInput.missing(*missing)

    resolved_severity = _coerce_severity(severity)

    if not fleet_services.vehicle_exists(db, vehicle_id):
        raise InvalidInput(
            f"Vehicle {vehicle_id} does not exist.",
            detail=[{"field": "vehicle_id", "reason": "unknown vehicle"}],
        )
    if not account_services.user_exists(db, identified_by):
        raise InvalidInput(
            f"User {identified_by} does not exist.",
            detail=[{"field": "identified_by", "reason": "unknown user"}],
        )

    from dvirdb.apps.inspections import models as inspection_models

    origin = db.get(inspection_models.Inspection, origin_inspection_id)
    if origin is None or origin.vehicle_id != vehicle_id:
        raise InvalidInput(
            f"Inspection {origin_inspection_id} is not an inspection of vehicle {vehicle_id}.",
            detail=[{"field": "origin_inspection_id", "reason": "unknown inspection for vehicle"}],
        )

    defect = models.Defect(
        vehicle_id=vehicle_id,
        origin_inspection_id=origin_inspection_id,
        description=description.strip(),
        location=location.strip() if location else None,
        severity=resolved_severity,
        status=models.DefectStatus.OPEN,
        identified_by_user_id=identified_by,
        identified_at=identified_at or _utcnow(),
        carried_over_count=0,
    )
    db.add(defect)
    flush_or_fail(db, operation="defect")

    audit_services.log_event(
        db,
        actor_user_id=actor.id,
        entity_type="defect",
        entity_id=defect.id,
        action="create",
        after={
            "vehicle_id": defect.vehicle_id,
            "origin_inspection_id": defect.origin_inspection_id,
            "severity": resolved_severity.value,
            "status": models.DefectStatus.OPEN.value,
        },
    )
    return defect


def increment_carry_over(db: Session, defect_id: str) -> None:
    """
    Add exactly one to the defect's carry-over count.

    Issued as a single UPDATE ... SET count = count + 1 so the database does
    the arithmetic; concurrent callers cannot lose an increment.
    """
    result = db.execute(
        update(models.Defect)
        .where(models.Defect.id == defect_id)
        .values(carried_over_count=models.Defect.carried_over_count + 1)
        .execution_options(synchronize_session="evaluate")
    )
    if result.rowcount != 1:
        raise NotFound(
            f"Defect {defect_id} not found for carry-over.",
            detail=[{"field": "defect_id", "reason": "not found"}],
        )


def update_defect_status(
    db: Session,
    *,
    defect_id: str,
    new_status: Union[str, models.DefectStatus],
    actor: User,
    correction_notes: Optional[str] = None,
    corrected_at: Optional[datetime] = None,
    deferral_reason: Optional[str] = None,
    deferral_approver: Optional[str] = None,
    policy: AccessPolicy = DEFAULT_POLICY,
) -> models.Defect:
    """
    Move a defect to `new_status` and commit.

    - -> corrected: corrector is the actor, date defaults to now.
    - -> deferred: reason and an existing approver are mandatory.
    - leaving corrected / deferred clears that state's data.
    Rejected changes leave the defect untouched.
    """
    policy.require(actor, Capability.UPDATE_DEFECT)
    target = _coerce_status(new_status)

    try:
        defect = get_defect(db, defect_id)
        before = snapshot(defect)
        after = dict(before)
        after["status"] = target.value

        correction_time = (corrected_at or _utcnow()) if target == models.DefectStatus.CORRECTED else None
        if target == models.DefectStatus.CORRECTED:
            after["corrected_by_user_id"] = actor.id
            after["corrected_at"] = _iso(correction_time)
            after["correction_notes"] = correction_notes
        else:
            after["corrected_by_user_id"] = None
            after["corrected_at"] = None
            after["correction_notes"] = None

        if target == models.DefectStatus.DEFERRED:
            after["deferral_reason"] = deferral_reason.strip() if deferral_reason else None
            after["deferral_approved_by_user_id"] = deferral_approver
            if deferral_approver and not account_services.user_exists(db, deferral_approver):
                raise InvalidInput(
                    f"Deferral approver {deferral_approver} does not exist.",
                    detail=[{"field": "deferral_approved_by_user_id", "reason": "unknown user"}],
                )
        else:
            after["deferral_reason"] = None
            after["deferral_approved_by_user_id"] = None

        # Validates the move and its guards, then writes the audit event.
        apply_transition(
            db,
            actor_user_id=actor.id,
            entity_type="defect",
            entity_id=defect.id,
            from_state=defect.status,
            to_state=target,
            before_obj=before,
            after_obj=after,
        )

        defect.status = target
        defect.corrected_by_user_id = after["corrected_by_user_id"]
        defect.corrected_at = correction_time
        defect.correction_notes = after["correction_notes"]
        defect.deferral_reason = after["deferral_reason"]
        defect.deferral_approved_by_user_id = after["deferral_approved_by_user_id"]
        db.add(defect)
    except DVIRError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, operation="defect status update", entity_id=defect_id) from exc

    commit_or_fail(db, operation="defect status update", entity_id=defect_id)
    logger.info(
        "Defect status changed",
        extra={"defect_id": defect_id, "from_status": before["status"], "to_status": target.value},
    )
    return defect


def mark_corrected(
    db: Session,
    *,
    defect_id: str,
    actor: User,
    correction_notes: Optional[str] = None,
    corrected_at: Optional[datetime] = None,
    policy: AccessPolicy = DEFAULT_POLICY,
) -> models.Defect:
    return update_defect_status(
        db,
        defect_id=defect_id,
        new_status=models.DefectStatus.CORRECTED,
        actor=actor,
        correction_notes=correction_notes,
        corrected_at=corrected_at,
        policy=policy,
    )


def hard_delete_defect(
    db: Session,
    *,
    defect_id: str,
    actor: User,
    reason: Optional[str] = None,
    policy: AccessPolicy = DEFAULT_POLICY,
) -> None:
    """
    Administrative override: physically remove a defect.

    Not part of the normal lifecycle; corrections never delete. The audit
    trail keeps a snapshot of the removed row.
    """
    policy.require(actor, Capability.HARD_DELETE)

    try:
        defect = get_defect(db, defect_id)
        before = snapshot(defect)
        before.update(
            {
                "vehicle_id": defect.vehicle_id,
                "origin_inspection_id": defect.origin_inspection_id,
                "severity": defect.severity.value,
                "description": defect.description,
            }
        )

        audit_services.log_event(
            db,
            actor_user_id=actor.id,
            entity_type="defect",
            entity_id=defect_id,
            action="hard_delete",
            before=before,
            after=None,
            metadata={"reason": reason} if reason else None,
        )
        db.delete(defect)
        db.flush()
    except DVIRError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, operation="defect hard delete", entity_id=defect_id) from exc

    commit_or_fail(db, operation="defect hard delete", entity_id=defect_id)
    logger.warning(
        "Defect hard-deleted by administrator",
        extra={"defect_id": defect_id, "actor_user_id": actor.id},
    )
