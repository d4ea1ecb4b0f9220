from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.orm import Session

GuardResult = List[Dict[str, str]]


def _get_value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def guard_defect_correction(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    missing = []
    if _blank(_get_value(after_obj, "corrected_by_user_id")):
        missing.append({"field": "corrected_by_user_id", "reason": "corrector required"})
    if _get_value(after_obj, "corrected_at") is None:
        missing.append({"field": "corrected_at", "reason": "correction timestamp required"})
    return missing


def guard_defect_deferral(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    missing = []
    if _blank(_get_value(after_obj, "deferral_reason")):
        missing.append({"field": "deferral_reason", "reason": "deferral reason required"})
    if _blank(_get_value(after_obj, "deferral_approved_by_user_id")):
        missing.append({"field": "deferral_approved_by_user_id", "reason": "deferral approver required"})
    return missing


def guard_inspection_review(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    missing = []
    if _blank(_get_value(after_obj, "reviewed_by_user_id")):
        missing.append({"field": "reviewed_by_user_id", "reason": "reviewer required"})
    if _get_value(after_obj, "reviewed_at") is None:
        missing.append({"field": "reviewed_at", "reason": "review timestamp required"})
    return missing
