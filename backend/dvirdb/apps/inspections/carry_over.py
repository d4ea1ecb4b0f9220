"""
Carry-over resolution.

Given a vehicle about to be inspected, find every defect that is still
unresolved and attach it to the new inspection, pointing at the inspection
where the defect was first identified (not the last inspection that
re-surfaced it). Each carried defect's counter goes up by exactly one.

Must run inside the inspection pipeline's per-vehicle lock and transaction;
on its own it does not serialize anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dvirdb.apps.defects import models as defect_models
from dvirdb.apps.defects import services as defect_services
from dvirdb.errors import DependencyDegraded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CarryOverEntry:
    defect: defect_models.Defect
    carried_over_from_inspection_id: str


@dataclass
class CarryOverResult:
    entries: List[CarryOverEntry] = field(default_factory=list)
    # True when the history read failed and `entries` is empty by default
    degraded: bool = False

    @property
    def defects(self) -> List[defect_models.Defect]:
        return [entry.defect for entry in self.entries]


def _read_unresolved(
    db: Session,
    vehicle_id: str,
) -> List[defect_models.Defect]:
    # SAVEPOINT so a failed read does not poison the caller's transaction.
    try:
        with db.begin_nested():
            return defect_services.list_unresolved(db, vehicle_id)
    except SQLAlchemyError as exc:
        raise DependencyDegraded(
            f"Could not read unresolved defects for vehicle {vehicle_id}.",
            detail=[{"field": "vehicle_id", "reason": "defect history unavailable"}],
        ) from exc


def resolve_carry_over(
    db: Session,
    vehicle_id: str,
    *,
    exclude_inspection_id: Optional[str] = None,
) -> CarryOverResult:
    """
    Collect unresolved defects for `vehicle_id` and bump their counters.

    `exclude_inspection_id` skips defects that originate from the inspection
    being created; those are new defects, not carried ones.

    A failed read is not fatal: the result is empty and flagged degraded,
    and the failure is logged at ERROR for operators. Counter increments are
    writes and propagate their errors.
    """
    try:
        unresolved = _read_unresolved(db, vehicle_id)
    except DependencyDegraded as exc:
        logger.error(
            "Carry-over degraded: inspection proceeds without carried-over defects",
            exc_info=exc.__cause__,
            extra={
                "error_class": exc.code,
                "vehicle_id": vehicle_id,
                "inspection_id": exclude_inspection_id,
            },
        )
        return CarryOverResult(entries=[], degraded=True)

    entries = [
        CarryOverEntry(
            defect=defect,
            carried_over_from_inspection_id=defect.origin_inspection_id,
        )
        for defect in unresolved
        if defect.origin_inspection_id != exclude_inspection_id
    ]

    for entry in entries:
        defect_services.increment_carry_over(db, entry.defect.id)

    if entries:
        logger.info(
            "Carried over unresolved defects",
            extra={"vehicle_id": vehicle_id, "defect_count": len(entries)},
        )
    return CarryOverResult(entries=entries)
