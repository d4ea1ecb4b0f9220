# backend/dvirdb/apps/defects/schemas.py
#
# Schemas for the defect ledger:
# - DefectCreate       : standalone defect against an existing inspection.
# - DefectStatusUpdate : user-initiated status change.
# - DefectRead         : full defect as stored.

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from .models import DefectSeverity, DefectStatus


class DefectCreate(BaseModel):
    vehicle_id: str
    origin_inspection_id: str
    description: str
    location: Optional[str] = None
    # Omitted severity is recorded as minor.
    severity: DefectSeverity = DefectSeverity.MINOR
    identified_by_user_id: Optional[str] = None
    identified_at: Optional[datetime] = None


class DefectStatusUpdate(BaseModel):
    status: DefectStatus
    correction_notes: Optional[str] = None
    corrected_at: Optional[datetime] = None
    deferral_reason: Optional[str] = None
    deferral_approved_by_user_id: Optional[str] = None


class DefectMarkCorrected(BaseModel):
    correction_notes: Optional[str] = None
    corrected_at: Optional[datetime] = None


class DefectRead(BaseModel):
    id: str
    vehicle_id: str
    origin_inspection_id: str
    description: str
    location: Optional[str] = None
    severity: DefectSeverity
    status: DefectStatus
    identified_by_user_id: str
    identified_at: datetime
    corrected_by_user_id: Optional[str] = None
    corrected_at: Optional[datetime] = None
    correction_notes: Optional[str] = None
    deferral_reason: Optional[str] = None
    deferral_approved_by_user_id: Optional[str] = None
    carried_over_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UncorrectedDefectsRead(BaseModel):
    vehicle_id: str
    count: int
    defects: List[DefectRead]
