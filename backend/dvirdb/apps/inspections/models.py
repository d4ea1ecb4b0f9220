# backend/dvirdb/apps/inspections/models.py

"""
Inspection module ORM models.

- Inspection: one driver vehicle inspection report (DVIR) for one vehicle.
- InspectionChecklistItem: ordered checklist lines recorded by the inspector.
- InspectionNewDefect: defects first identified by this inspection.
- InspectionCarriedOverDefect: unresolved defects re-attached at creation,
  each pointing at the inspection where the defect was first identified.
  Written once by the carry-over resolver and never edited.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# ---------------------------------------------------------------------------
# Enumerations – values match API and DB values
# ---------------------------------------------------------------------------


class InspectionTypeEnum(str, Enum):
    PRE_TRIP = "pre_trip"
    POST_TRIP = "post_trip"
    ROUTINE = "routine"


class InspectionStatusEnum(str, Enum):
    """Lifecycle state of an inspection record. Never moves backward."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REQUIRES_REPAIR = "requires_repair"


class ChecklistCategoryEnum(str, Enum):
    EXTERIOR = "exterior"
    INTERIOR = "interior"
    ENGINE = "engine"
    BRAKES = "brakes"
    TIRES = "tires"
    LIGHTS = "lights"
    SAFETY = "safety"      # safety equipment
    OTHER = "other"


class ChecklistConditionEnum(str, Enum):
    SATISFACTORY = "satisfactory"
    NEEDS_ATTENTION = "needs_attention"
    DEFECTIVE = "defective"


# ---------------------------------------------------------------------------
# Inspection
# ---------------------------------------------------------------------------


class Inspection(Base):
    __tablename__ = "inspections"
    __table_args__ = (
        CheckConstraint("odometer_reading IS NULL OR odometer_reading >= 0", name="ck_inspections_odometer"),
        Index("ix_inspections_vehicle_inspected", "vehicle_id", "inspected_at"),
    )

    id: str = Column(String(36), primary_key=True, default=generate_uuid7)
    inspection_number: str = Column(String(32), nullable=False, unique=True, index=True)

    vehicle_id: str = Column(
        String(36),
        ForeignKey("vehicles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    inspector_user_id: str = Column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    inspected_at: datetime = Column(DateTime(timezone=True), nullable=False, index=True)

    inspection_type: InspectionTypeEnum = Column(
        SQLEnum(InspectionTypeEnum, name="inspection_type", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    status: InspectionStatusEnum = Column(
        SQLEnum(InspectionStatusEnum, name="inspection_status", values_callable=_enum_values),
        nullable=False,
        default=InspectionStatusEnum.DRAFT,
        index=True,
    )

    odometer_reading: int | None = Column(Integer, nullable=True)

    # Derived: new or carried-over defects present
    has_defects: bool = Column(Boolean, nullable=False, default=False)
    safe_to_operate: bool = Column(Boolean, nullable=False, default=True)
    # True when unresolved defects could not be read at creation time
    carry_over_degraded: bool = Column(Boolean, nullable=False, default=False)

    inspector_signature: str | None = Column(Text, nullable=True)
    inspector_notes: str | None = Column(Text, nullable=True)

    # Review (status reviewed / approved only)
    reviewed_by_user_id: str | None = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    reviewed_at: datetime | None = Column(DateTime(timezone=True), nullable=True)
    review_notes: str | None = Column(Text, nullable=True)

    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: datetime = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    checklist_items = relationship(
        "InspectionChecklistItem",
        back_populates="inspection",
        order_by="InspectionChecklistItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    new_defect_links = relationship(
        "InspectionNewDefect",
        back_populates="inspection",
        order_by="InspectionNewDefect.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    carried_over_links = relationship(
        "InspectionCarriedOverDefect",
        back_populates="inspection",
        foreign_keys="InspectionCarriedOverDefect.inspection_id",
        order_by="InspectionCarriedOverDefect.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def new_defect_ids(self) -> list:
        return [link.defect_id for link in self.new_defect_links]

    @property
    def carried_over_defects(self) -> list:
        return [
            {
                "defect_id": link.defect_id,
                "carried_over_from_inspection_id": link.carried_over_from_inspection_id,
            }
            for link in self.carried_over_links
        ]

    def __repr__(self) -> str:
        return f"<Inspection id={self.id} vehicle={self.vehicle_id} status={self.status}>"


class InspectionChecklistItem(Base):
    __tablename__ = "inspection_checklist_items"
    __table_args__ = (
        UniqueConstraint("inspection_id", "position", name="uq_checklist_item_position"),
    )

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    inspection_id: str = Column(
        String(36),
        ForeignKey("inspections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: int = Column(Integer, nullable=False)

    item: str = Column(String(255), nullable=False)
    category: ChecklistCategoryEnum | None = Column(
        SQLEnum(ChecklistCategoryEnum, name="checklist_category", values_callable=_enum_values),
        nullable=True,
    )
    condition: ChecklistConditionEnum = Column(
        SQLEnum(ChecklistConditionEnum, name="checklist_condition", values_callable=_enum_values),
        nullable=False,
    )
    notes: str | None = Column(Text, nullable=True)

    inspection = relationship("Inspection", back_populates="checklist_items")


class InspectionNewDefect(Base):
    __tablename__ = "inspection_new_defects"
    __table_args__ = (
        UniqueConstraint("inspection_id", "defect_id", name="uq_inspection_new_defect"),
    )

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    inspection_id: str = Column(
        String(36),
        ForeignKey("inspections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Plain id: the link outlives an administrative hard delete of the defect
    defect_id: str = Column(String(36), nullable=False, index=True)
    position: int = Column(Integer, nullable=False)

    inspection = relationship("Inspection", back_populates="new_defect_links")


class InspectionCarriedOverDefect(Base):
    __tablename__ = "inspection_carried_over_defects"
    __table_args__ = (
        UniqueConstraint("inspection_id", "defect_id", name="uq_inspection_carried_defect"),
    )

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    inspection_id: str = Column(
        String(36),
        ForeignKey("inspections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Plain id: the link outlives an administrative hard delete of the defect
    defect_id: str = Column(String(36), nullable=False, index=True)
    # The defect's origin inspection, not the previous inspection
    carried_over_from_inspection_id: str = Column(
        String(36),
        ForeignKey("inspections.id", ondelete="RESTRICT"),
        nullable=False,
    )
    position: int = Column(Integer, nullable=False)

    inspection = relationship(
        "Inspection",
        back_populates="carried_over_links",
        foreign_keys=[inspection_id],
    )
