# backend/dvirdb/apps/defects/models.py

"""
Defect ledger ORM models.

- Defect: one mechanical or safety issue on one vehicle, tracked from the
  inspection that first identified it until it is corrected. Unresolved
  defects are carried into every later inspection of the same vehicle.

Correction data (`corrected_*`) is present only while status is CORRECTED,
deferral data only while status is DEFERRED. The services enforce both.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Enum as SQLEnum,
)

from ...database import Base
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# ---------------------------------------------------------------------------
# Enumerations – values match API and DB values
# ---------------------------------------------------------------------------


class DefectSeverity(str, Enum):
    """How bad the defect is."""

    CRITICAL = "critical"  # vehicle unsafe
    MAJOR = "major"        # needs immediate attention
    MINOR = "minor"        # can wait


class DefectStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CORRECTED = "corrected"
    DEFERRED = "deferred"


UNRESOLVED_STATUSES = (
    DefectStatus.OPEN,
    DefectStatus.IN_PROGRESS,
    DefectStatus.DEFERRED,
)


# ---------------------------------------------------------------------------
# Defect
# ---------------------------------------------------------------------------


class Defect(Base):
    __tablename__ = "defects"
    __table_args__ = (
        CheckConstraint("carried_over_count >= 0", name="ck_defects_carry_over_non_negative"),
        Index("ix_defects_vehicle_status_identified", "vehicle_id", "status", "identified_at"),
    )

    id: str = Column(String(36), primary_key=True, default=generate_uuid7)

    # A defect belongs to exactly one vehicle for its lifetime
    vehicle_id: str = Column(
        String(36),
        ForeignKey("vehicles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Inspection that first identified the defect; never rewritten by carry-over
    origin_inspection_id: str = Column(
        String(36),
        ForeignKey("inspections.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    description: str = Column(Text, nullable=False)
    # e.g. "front left tire", "engine bay", "rear emergency exit"
    location: str | None = Column(String(255), nullable=True)

    severity: DefectSeverity = Column(
        SQLEnum(DefectSeverity, name="defect_severity", values_callable=_enum_values),
        nullable=False,
        default=DefectSeverity.MINOR,
        index=True,
    )
    status: DefectStatus = Column(
        SQLEnum(DefectStatus, name="defect_status", values_callable=_enum_values),
        nullable=False,
        default=DefectStatus.OPEN,
        index=True,
    )

    identified_by_user_id: str = Column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    identified_at: datetime = Column(DateTime(timezone=True), nullable=False, index=True)

    # Correction (status == corrected only)
    corrected_by_user_id: str | None = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    corrected_at: datetime | None = Column(DateTime(timezone=True), nullable=True)
    correction_notes: str | None = Column(Text, nullable=True)

    # Deferral (status == deferred only)
    deferral_reason: str | None = Column(Text, nullable=True)
    deferral_approved_by_user_id: str | None = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # System-maintained; incremented once per inspection that carries the defect
    carried_over_count: int = Column(Integer, nullable=False, default=0)

    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: datetime = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    @property
    def is_unresolved(self) -> bool:
        return self.status != DefectStatus.CORRECTED

    def __repr__(self) -> str:
        return f"<Defect id={self.id} vehicle={self.vehicle_id} severity={self.severity} status={self.status}>"
