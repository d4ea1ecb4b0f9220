# backend/dvirdb/apps/inspections/schemas.py
#
# Schemas for the inspection module:
# - ChecklistItem*     : one checklist line of a DVIR.
# - NewDefectDescriptor: a defect observed during this inspection.
# - InspectionCreate   : what the inspector submits.
# - InspectionReview   : reviewer decision.
# - InspectionRead     : stored record, including carried-over defects.

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from dvirdb.apps.defects.models import DefectSeverity

from .models import (
    ChecklistCategoryEnum,
    ChecklistConditionEnum,
    InspectionStatusEnum,
    InspectionTypeEnum,
)


class ChecklistItemCreate(BaseModel):
    item: str
    category: Optional[ChecklistCategoryEnum] = None
    condition: ChecklistConditionEnum
    notes: Optional[str] = None


class ChecklistItemRead(ChecklistItemCreate):
    position: int

    class Config:
        from_attributes = True


class NewDefectDescriptor(BaseModel):
    """
    A defect observed during the inspection.

    identified_by defaults to the inspector and identified_at to the
    inspection time.
    """

    description: str
    severity: DefectSeverity
    location: Optional[str] = None
    identified_by: Optional[str] = None
    identified_at: Optional[datetime] = None


class InspectionCreate(BaseModel):
    vehicle_id: str
    # Defaults to the authenticated user.
    inspector_id: Optional[str] = None
    inspection_type: InspectionTypeEnum
    inspected_at: Optional[datetime] = None
    odometer_reading: Optional[int] = Field(default=None, ge=0)
    checklist_items: List[ChecklistItemCreate] = Field(default_factory=list)
    new_defects: List[NewDefectDescriptor] = Field(default_factory=list)
    safe_to_operate: bool = True
    inspector_signature: Optional[str] = None
    inspector_notes: Optional[str] = None


class InspectionReview(BaseModel):
    decision: InspectionStatusEnum
    notes: Optional[str] = None


class CarriedOverDefectRead(BaseModel):
    defect_id: str
    carried_over_from_inspection_id: str


class InspectionRead(BaseModel):
    id: str
    inspection_number: str
    vehicle_id: str
    inspector_user_id: str
    inspected_at: datetime
    inspection_type: InspectionTypeEnum
    status: InspectionStatusEnum
    odometer_reading: Optional[int] = None
    checklist_items: List[ChecklistItemRead] = Field(default_factory=list)
    new_defect_ids: List[str] = Field(default_factory=list)
    carried_over_defects: List[CarriedOverDefectRead] = Field(default_factory=list)
    has_defects: bool
    safe_to_operate: bool
    carry_over_degraded: bool
    inspector_signature: Optional[str] = None
    inspector_notes: Optional[str] = None
    reviewed_by_user_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
