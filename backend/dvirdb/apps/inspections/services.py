from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dvirdb.apps.accounts import services as account_services
from dvirdb.apps.accounts.models import User
from dvirdb.apps.accounts.policy import DEFAULT_POLICY, AccessPolicy, Capability
from dvirdb.apps.audit import services as audit_services
from dvirdb.apps.defects import services as defect_services
from dvirdb.apps.fleet import services as fleet_services
from dvirdb.apps.workflow import apply_transition
from dvirdb.concurrency import VehicleLockRegistry, vehicle_locks
from dvirdb.errors import DVIRError, InvalidInput, NotFound
from dvirdb.transactions import commit_or_fail, flush_or_fail, storage_failure
from dvirdb.utils.identifiers import generate_inspection_number

from . import carry_over, models, severity

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_enum(enum_cls, value: Any, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidInput(
            f"Invalid {field_name} {value!r}.",
            detail=[{"field": field_name, "reason": f"must be one of {allowed}"}],
        )


def _build_checklist(items: Iterable[Any]) -> List[models.InspectionChecklistItem]:
    built: List[models.InspectionChecklistItem] = []
    for position, raw in enumerate(items):
        name = _field(raw, "item")
        condition = _field(raw, "condition")
        if _blank(name) or _blank(condition):
            raise InvalidInput(
                f"Checklist item {position} is incomplete.",
                detail=[{"field": f"checklist_items[{position}]", "reason": "item and condition required"}],
            )
        category = _field(raw, "category")
        built.append(
            models.InspectionChecklistItem(
                position=position,
                item=name.strip(),
                category=_coerce_enum(models.ChecklistCategoryEnum, category, "category") if category else None,
                condition=_coerce_enum(models.ChecklistConditionEnum, condition, "condition"),
                notes=_field(raw, "notes"),
            )
        )
    return built


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_inspection(db: Session, inspection_id: str, *, for_update: bool = False) -> models.Inspection:
    q = db.query(models.Inspection).filter(models.Inspection.id == inspection_id)
    if for_update:
        q = q.with_for_update()
    inspection = q.first()
    if inspection is None:
        raise NotFound(
            f"Inspection {inspection_id} not found.",
            detail=[{"field": "inspection_id", "reason": "not found"}],
        )
    return inspection


def list_inspections(
    db: Session,
    *,
    vehicle_id: Optional[str] = None,
    status: Optional[models.InspectionStatusEnum] = None,
    inspection_type: Optional[models.InspectionTypeEnum] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Inspection]:
    q = db.query(models.Inspection)
    if vehicle_id:
        q = q.filter(models.Inspection.vehicle_id == vehicle_id)
    if status:
        q = q.filter(models.Inspection.status == status)
    if inspection_type:
        q = q.filter(models.Inspection.inspection_type == inspection_type)
    return (
        q.order_by(models.Inspection.inspected_at.desc(), models.Inspection.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


# ---------------------------------------------------------------------------
# Inspection record pipeline
# ---------------------------------------------------------------------------


def create_inspection(
    db: Session,
    *,
    vehicle_id: Optional[str],
    inspector_id: Optional[str],
    inspection_type: Union[str, models.InspectionTypeEnum, None],
    checklist_items: Optional[Iterable[Any]] = None,
    new_defects: Optional[Iterable[Any]] = None,
    submitted_safe_to_operate: bool = True,
    odometer_reading: Optional[int] = None,
    inspected_at: Optional[datetime] = None,
    inspector_signature: Optional[str] = None,
    inspector_notes: Optional[str] = None,
    actor: User,
    policy: AccessPolicy = DEFAULT_POLICY,
    locks: VehicleLockRegistry = vehicle_locks,
) -> models.Inspection:
    """
    Create and commit a DVIR for one vehicle.

    1. validate input
    2. create the record as DRAFT
    3. create the newly observed defects (any failure aborts everything)
    4. attach every unresolved defect of the vehicle as carried over
    5. derive has_defects
    6. apply severity escalation
    7. persist as SUBMITTED, or REQUIRES_REPAIR when escalated

    Steps 2-7 run under the vehicle's lock and commit once, so concurrent
    inspections of one vehicle each see and count every unresolved defect
    exactly once.
    """
    policy.require(actor, Capability.INSPECT)

    missing = [
        name
        for name, value in (
            ("vehicle_id", vehicle_id),
            ("inspector_id", inspector_id),
            ("inspection_type", inspection_type),
        )
        if _blank(value)
    ]
    if missing:
        raise InvalidInput.missing(*missing)

    resolved_type = _coerce_enum(models.InspectionTypeEnum, inspection_type, "inspection_type")
    if odometer_reading is not None and odometer_reading < 0:
        raise InvalidInput(
            "Odometer reading cannot be negative.",
            detail=[{"field": "odometer_reading", "reason": "must be >= 0"}],
        )
    checklist = _build_checklist(checklist_items or [])
    descriptors = list(new_defects or [])
    when = inspected_at or _utcnow()

    with locks.hold(vehicle_id):
        try:
            if not fleet_services.vehicle_exists(db, vehicle_id):
                raise InvalidInput(
                    f"Vehicle {vehicle_id} does not exist.",
                    detail=[{"field": "vehicle_id", "reason": "unknown vehicle"}],
                )
            if not account_services.user_exists(db, inspector_id):
                raise InvalidInput(
                    f"Inspector {inspector_id} does not exist.",
                    detail=[{"field": "inspector_id", "reason": "unknown user"}],
                )
            fleet_services.lock_vehicle_row(db, vehicle_id)

            inspection = models.Inspection(
                inspection_number=generate_inspection_number(when),
                vehicle_id=vehicle_id,
                inspector_user_id=inspector_id,
                inspected_at=when,
                inspection_type=resolved_type,
                status=models.InspectionStatusEnum.DRAFT,
                odometer_reading=odometer_reading,
                safe_to_operate=bool(submitted_safe_to_operate),
                has_defects=False,
                inspector_signature=inspector_signature,
                inspector_notes=inspector_notes,
                checklist_items=checklist,
                new_defect_links=[],
                carried_over_links=[],
            )
            db.add(inspection)
            flush_or_fail(db, operation="inspection draft")

            created = []
            for position, descriptor in enumerate(descriptors):
                defect = defect_services.create_defect(
                    db,
                    vehicle_id=vehicle_id,
                    origin_inspection_id=inspection.id,
                    description=_field(descriptor, "description"),
                    severity=_field(descriptor, "severity"),
                    location=_field(descriptor, "location"),
                    identified_by=_field(descriptor, "identified_by") or inspector_id,
                    identified_at=_field(descriptor, "identified_at") or when,
                    actor=actor,
                    policy=policy,
                )
                inspection.new_defect_links.append(
                    models.InspectionNewDefect(defect_id=defect.id, position=position)
                )
                created.append(defect)

            carried = carry_over.resolve_carry_over(
                db,
                vehicle_id,
                exclude_inspection_id=inspection.id,
            )
            for position, entry in enumerate(carried.entries):
                inspection.carried_over_links.append(
                    models.InspectionCarriedOverDefect(
                        defect_id=entry.defect.id,
                        carried_over_from_inspection_id=entry.carried_over_from_inspection_id,
                        position=position,
                    )
                )

            inspection.has_defects = bool(created or carried.entries)
            inspection.carry_over_degraded = carried.degraded

            verdict = severity.evaluate(
                created,
                carried.defects,
                submitted_safe_to_operate=submitted_safe_to_operate,
            )
            inspection.safe_to_operate = verdict.safe_to_operate
            target = verdict.forced_status or models.InspectionStatusEnum.SUBMITTED

            apply_transition(
                db,
                actor_user_id=actor.id,
                entity_type="inspection",
                entity_id=inspection.id,
                from_state=models.InspectionStatusEnum.DRAFT,
                to_state=target,
                before_obj=None,
                after_obj={
                    "vehicle_id": vehicle_id,
                    "has_defects": inspection.has_defects,
                    "safe_to_operate": inspection.safe_to_operate,
                    "escalated": verdict.escalated,
                    "carry_over_degraded": carried.degraded,
                    "new_defect_ids": [d.id for d in created],
                    "carried_over_defect_ids": [d.id for d in carried.defects],
                },
            )
            inspection.status = target
            if carried.entries:
                audit_services.log_event(
                    db,
                    actor_user_id=actor.id,
                    entity_type="inspection",
                    entity_id=inspection.id,
                    action="carry_over",
                    after={
                        "carried_over": [
                            {
                                "defect_id": entry.defect.id,
                                "carried_over_from_inspection_id": entry.carried_over_from_inspection_id,
                            }
                            for entry in carried.entries
                        ]
                    },
                )
            flush_or_fail(db, operation="inspection")
        except DVIRError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            raise storage_failure(db, exc, operation="inspection", entity_id=vehicle_id) from exc

        commit_or_fail(db, operation="inspection create", entity_id=inspection.id)

    if verdict.escalated:
        logger.warning(
            "Inspection escalated to requires_repair",
            extra={"inspection_id": inspection.id, "vehicle_id": vehicle_id},
        )
    else:
        logger.info(
            "Inspection submitted",
            extra={"inspection_id": inspection.id, "vehicle_id": vehicle_id},
        )
    return inspection
