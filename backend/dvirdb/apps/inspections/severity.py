"""
Severity escalation.

A critical defect anywhere in an inspection, newly found or carried over,
makes the vehicle unsafe and forces the record into REQUIRES_REPAIR. Pure
functions only; nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from dvirdb.apps.defects.models import DefectSeverity

from .models import InspectionStatusEnum


@dataclass(frozen=True)
class SafetyVerdict:
    safe_to_operate: bool
    forced_status: Optional[InspectionStatusEnum] = None

    @property
    def escalated(self) -> bool:
        return self.forced_status is not None


def _severity_of(defect: Any) -> Optional[str]:
    value = defect.get("severity") if isinstance(defect, dict) else getattr(defect, "severity", None)
    if value is None:
        return None
    return str(getattr(value, "value", value)).lower()


def is_critical(defect: Any) -> bool:
    return _severity_of(defect) == DefectSeverity.CRITICAL.value


def evaluate(
    new_defects: Iterable[Any],
    carried_over_defects: Iterable[Any],
    *,
    submitted_safe_to_operate: bool,
) -> SafetyVerdict:
    """
    Decide safety for the union of new and carried-over defects.

    Any critical defect -> unsafe, REQUIRES_REPAIR. Otherwise the
    inspector's own call stands and no status is forced.
    """
    for defect in list(new_defects) + list(carried_over_defects):
        if is_critical(defect):
            return SafetyVerdict(
                safe_to_operate=False,
                forced_status=InspectionStatusEnum.REQUIRES_REPAIR,
            )
    return SafetyVerdict(safe_to_operate=bool(submitted_safe_to_operate))
