from __future__ import annotations

from .guards import (
    guard_defect_correction,
    guard_defect_deferral,
    guard_inspection_review,
)

# Defects move freely between the four states by hand; only entering
# "corrected" or "deferred" needs supporting data.
WORKFLOWS = {
    "defect": {
        "transitions": {
            "open": {
                "in_progress": [],
                "corrected": [guard_defect_correction],
                "deferred": [guard_defect_deferral],
            },
            "in_progress": {
                "open": [],
                "corrected": [guard_defect_correction],
                "deferred": [guard_defect_deferral],
            },
            "corrected": {
                "open": [],
                "in_progress": [],
                "deferred": [guard_defect_deferral],
            },
            "deferred": {
                "open": [],
                "in_progress": [],
                "corrected": [guard_defect_correction],
            },
        }
    },
    "inspection": {
        "transitions": {
            "draft": {
                "submitted": [],
                "requires_repair": [],
            },
            "submitted": {
                "reviewed": [guard_inspection_review],
                "approved": [guard_inspection_review],
            },
            "requires_repair": {
                "reviewed": [guard_inspection_review],
                "approved": [guard_inspection_review],
            },
            "reviewed": {
                "approved": [guard_inspection_review],
            },
            "approved": {},
        }
    },
}


def allowed_targets(entity_type: str, from_state: str) -> set:
    workflow = WORKFLOWS.get(entity_type, {})
    return set(workflow.get("transitions", {}).get(from_state, {}).keys())
