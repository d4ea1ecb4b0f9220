"""
Review / approval of submitted inspections.

A reviewer (fleet manager or admin) signs off a DVIR as REVIEWED and later
APPROVED, or approves it directly. REQUIRES_REPAIR records are reviewed
the same way; clearing the vehicle is a human decision. DRAFT records have
nothing to review and APPROVED is terminal.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dvirdb.apps.accounts.models import User
from dvirdb.apps.accounts.policy import DEFAULT_POLICY, AccessPolicy, Capability
from dvirdb.apps.workflow import apply_transition
from dvirdb.errors import DVIRError, InvalidInput, InvalidTransition
from dvirdb.transactions import commit_or_fail, storage_failure

from . import models
from .services import get_inspection

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = {
    models.InspectionStatusEnum.REVIEWED,
    models.InspectionStatusEnum.APPROVED,
}

REVIEWABLE_STATUSES = {
    models.InspectionStatusEnum.SUBMITTED,
    models.InspectionStatusEnum.REQUIRES_REPAIR,
    models.InspectionStatusEnum.REVIEWED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_decision(value: Union[str, models.InspectionStatusEnum, None]) -> models.InspectionStatusEnum:
    try:
        decision = models.InspectionStatusEnum(getattr(value, "value", value))
    except ValueError:
        decision = None
    if decision not in REVIEW_DECISIONS:
        raise InvalidInput(
            f"Review decision must be reviewed or approved, got {value!r}.",
            detail=[{"field": "decision", "reason": "must be reviewed or approved"}],
        )
    return decision


def review_inspection(
    db: Session,
    *,
    inspection_id: str,
    reviewer: User,
    decision: Union[str, models.InspectionStatusEnum],
    notes: Optional[str] = None,
    reviewed_at: Optional[datetime] = None,
    policy: AccessPolicy = DEFAULT_POLICY,
) -> models.Inspection:
    policy.require(reviewer, Capability.REVIEW)
    target = _coerce_decision(decision)

    try:
        inspection = get_inspection(db, inspection_id, for_update=True)
        current = inspection.status
        if current not in REVIEWABLE_STATUSES:
            reason = "nothing to review" if current == models.InspectionStatusEnum.DRAFT else "already approved"
            raise InvalidTransition(
                f"Inspection {inspection_id} is {current.value}; {reason}.",
                detail=[{"field": "status", "reason": reason}],
            )

        when = reviewed_at or _utcnow()
        apply_transition(
            db,
            actor_user_id=reviewer.id,
            entity_type="inspection",
            entity_id=inspection.id,
            from_state=current,
            to_state=target,
            before_obj={
                "reviewed_by_user_id": inspection.reviewed_by_user_id,
                "review_notes": inspection.review_notes,
            },
            after_obj={
                "reviewed_by_user_id": reviewer.id,
                "reviewed_at": when.isoformat(),
                "review_notes": notes,
            },
        )

        inspection.status = target
        inspection.reviewed_by_user_id = reviewer.id
        inspection.reviewed_at = when
        inspection.review_notes = notes
        db.add(inspection)
    except DVIRError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        raise storage_failure(db, exc, operation="inspection review", entity_id=inspection_id) from exc

    commit_or_fail(db, operation="inspection review", entity_id=inspection_id)
    logger.info(
        "Inspection reviewed",
        extra={
            "inspection_id": inspection_id,
            "from_status": current.value,
            "to_status": target.value,
        },
    )
    return inspection
