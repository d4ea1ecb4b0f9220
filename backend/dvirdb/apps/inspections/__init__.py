# backend/dvirdb/apps/inspections/__init__.py
"""
Inspections app

Responsible for:
- Inspection records (DVIRs) and their checklist lines
- Carry-over of unresolved defects into each new inspection
- Severity escalation (critical defect -> requires repair)
- Review / approval of submitted inspections
"""

from . import models  # noqa: F401

__all__ = ["models"]
