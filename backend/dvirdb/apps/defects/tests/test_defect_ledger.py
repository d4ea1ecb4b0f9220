from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from dvirdb.apps.accounts.models import AccountRole
from dvirdb.apps.audit import models as audit_models
from dvirdb.apps.audit import services as audit_services
from dvirdb.apps.defects import models as defect_models
from dvirdb.apps.defects import services as defect_services
from dvirdb.apps.inspections import models as inspection_models
from dvirdb.apps.inspections import services as inspection_services
from dvirdb.errors import InvalidInput, InvalidTransition, NotFound, StorageFailure, Unauthorized


def _inspect(db, vehicle, inspector, **kwargs) -> inspection_models.Inspection:
    return inspection_services.create_inspection(
        db,
        vehicle_id=vehicle.id,
        inspector_id=inspector.id,
        inspection_type="pre_trip",
        actor=inspector,
        **kwargs,
    )


def _create_defect(db, vehicle, driver, origin, **overrides) -> defect_models.Defect:
    fields = dict(
        vehicle_id=vehicle.id,
        origin_inspection_id=origin.id,
        description="Cracked windshield",
        severity="major",
        identified_by=driver.id,
        location="front",
        actor=driver,
    )
    fields.update(overrides)
    defect = defect_services.create_defect(db, **fields)
    db.commit()
    return defect


@pytest.fixture()
def ledger(db_session, make_user, make_vehicle):
    driver = make_user(db_session, AccountRole.DRIVER)
    mechanic = make_user(db_session, AccountRole.MECHANIC)
    manager = make_user(db_session, AccountRole.FLEET_MANAGER)
    admin = make_user(db_session, AccountRole.ADMIN)
    vehicle = make_vehicle(db_session)
    origin = _inspect(db_session, vehicle, driver)
    return {
        "db": db_session,
        "driver": driver,
        "mechanic": mechanic,
        "manager": manager,
        "admin": admin,
        "vehicle": vehicle,
        "origin": origin,
    }


def test_create_defect_starts_open_with_zero_carry_over(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    assert defect.status == defect_models.DefectStatus.OPEN
    assert defect.severity == defect_models.DefectSeverity.MAJOR
    assert defect.carried_over_count == 0
    assert defect.origin_inspection_id == ledger["origin"].id
    assert defect.identified_at is not None

    events = (
        db.query(audit_models.AuditEvent)
        .filter(audit_models.AuditEvent.entity_id == defect.id)
        .all()
    )
    assert [event.action for event in events] == ["create"]


def test_create_defect_rejects_missing_fields(ledger):
    db = ledger["db"]
    with pytest.raises(InvalidInput) as excinfo:
        _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"], description="   ")

    assert {"field": "description", "reason": "required"} in excinfo.value.detail
    assert db.query(defect_models.Defect).count() == 0


def test_create_defect_rejects_unknown_vehicle_and_user(ledger):
    db = ledger["db"]
    with pytest.raises(InvalidInput):
        _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"], vehicle_id="no-such-vehicle")
    db.rollback()
    with pytest.raises(InvalidInput):
        _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"], identified_by="no-such-user")


def test_create_defect_rejects_origin_from_another_vehicle(ledger, make_vehicle):
    db = ledger["db"]
    other = make_vehicle(db)
    with pytest.raises(InvalidInput) as excinfo:
        _create_defect(db, other, ledger["driver"], ledger["origin"])

    assert excinfo.value.detail[0]["field"] == "origin_inspection_id"


def test_create_defect_requires_inspect_capability(ledger, make_user):
    db = ledger["db"]
    viewer = make_user(db, AccountRole.VIEW_ONLY)
    with pytest.raises(Unauthorized):
        _create_defect(db, ledger["vehicle"], viewer, ledger["origin"], identified_by=ledger["driver"].id)


def test_mark_corrected_sets_corrector_and_defaults_date(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    before = datetime.now(timezone.utc)
    updated = defect_services.update_defect_status(
        db,
        defect_id=defect.id,
        new_status="corrected",
        actor=ledger["mechanic"],
        correction_notes="replaced brake pad",
    )

    assert updated.status == defect_models.DefectStatus.CORRECTED
    assert updated.corrected_by_user_id == ledger["mechanic"].id
    assert updated.correction_notes == "replaced brake pad"
    assert updated.corrected_at is not None
    assert updated.corrected_at >= before


def test_mark_corrected_keeps_supplied_date(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])
    when = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)

    updated = defect_services.mark_corrected(
        db,
        defect_id=defect.id,
        actor=ledger["mechanic"],
        corrected_at=when,
    )

    assert updated.corrected_at == when
    assert updated.correction_notes is None


def test_reopening_a_corrected_defect_clears_correction_data(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])
    defect_services.mark_corrected(db, defect_id=defect.id, actor=ledger["mechanic"], correction_notes="fixed")

    reopened = defect_services.update_defect_status(
        db,
        defect_id=defect.id,
        new_status=defect_models.DefectStatus.OPEN,
        actor=ledger["mechanic"],
    )

    assert reopened.status == defect_models.DefectStatus.OPEN
    assert reopened.corrected_by_user_id is None
    assert reopened.corrected_at is None
    assert reopened.correction_notes is None


def test_deferral_requires_reason_and_approver(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    with pytest.raises(InvalidInput) as excinfo:
        defect_services.update_defect_status(
            db,
            defect_id=defect.id,
            new_status="deferred",
            actor=ledger["mechanic"],
        )

    fields = {item["field"] for item in excinfo.value.detail}
    assert fields == {"deferral_reason", "deferral_approved_by_user_id"}
    assert defect_services.get_defect(db, defect.id).status == defect_models.DefectStatus.OPEN


def test_deferral_rejects_unknown_approver(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    with pytest.raises(InvalidInput):
        defect_services.update_defect_status(
            db,
            defect_id=defect.id,
            new_status="deferred",
            actor=ledger["mechanic"],
            deferral_reason="parts on order",
            deferral_approver="ghost",
        )

    assert defect_services.get_defect(db, defect.id).deferral_reason is None


def test_deferral_is_stored_and_cleared_when_work_resumes(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    deferred = defect_services.update_defect_status(
        db,
        defect_id=defect.id,
        new_status="deferred",
        actor=ledger["mechanic"],
        deferral_reason="parts on order",
        deferral_approver=ledger["manager"].id,
    )
    assert deferred.deferral_reason == "parts on order"
    assert deferred.deferral_approved_by_user_id == ledger["manager"].id

    resumed = defect_services.update_defect_status(
        db,
        defect_id=defect.id,
        new_status="in_progress",
        actor=ledger["mechanic"],
    )
    assert resumed.status == defect_models.DefectStatus.IN_PROGRESS
    assert resumed.deferral_reason is None
    assert resumed.deferral_approved_by_user_id is None


def test_same_status_update_is_rejected(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    with pytest.raises(InvalidTransition):
        defect_services.update_defect_status(
            db,
            defect_id=defect.id,
            new_status="open",
            actor=ledger["mechanic"],
        )


def test_unknown_status_is_invalid_input(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    with pytest.raises(InvalidInput):
        defect_services.update_defect_status(
            db,
            defect_id=defect.id,
            new_status="fixed-ish",
            actor=ledger["mechanic"],
        )


def test_status_update_writes_transition_event(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])
    defect_services.update_defect_status(
        db,
        defect_id=defect.id,
        new_status="in_progress",
        actor=ledger["mechanic"],
    )

    event = (
        db.query(audit_models.AuditEvent)
        .filter(
            audit_models.AuditEvent.entity_id == defect.id,
            audit_models.AuditEvent.action == "transition",
        )
        .one()
    )
    assert event.actor_user_id == ledger["mechanic"].id
    assert event.before["status"] == "open"
    assert event.after["status"] == "in_progress"


def test_uncorrected_defects_oldest_first_and_include_deferred(ledger):
    db = ledger["db"]
    base = datetime(2026, 5, 1, 6, 0, tzinfo=timezone.utc)
    newer = _create_defect(
        db, ledger["vehicle"], ledger["driver"], ledger["origin"],
        description="Loose mirror", identified_at=base + timedelta(hours=2),
    )
    older = _create_defect(
        db, ledger["vehicle"], ledger["driver"], ledger["origin"],
        description="Tire tread low", identified_at=base,
    )
    fixed = _create_defect(
        db, ledger["vehicle"], ledger["driver"], ledger["origin"],
        description="Dome light out", identified_at=base + timedelta(hours=1),
    )
    defect_services.mark_corrected(db, defect_id=fixed.id, actor=ledger["mechanic"])
    defect_services.update_defect_status(
        db,
        defect_id=newer.id,
        new_status="deferred",
        actor=ledger["mechanic"],
        deferral_reason="cosmetic",
        deferral_approver=ledger["manager"].id,
    )

    defects, count = defect_services.get_uncorrected_defects(
        db,
        ledger["vehicle"].id,
        actor=ledger["driver"],
    )

    assert [d.id for d in defects] == [older.id, newer.id]
    assert count == 2


def test_uncorrected_defects_requires_vehicle(ledger):
    with pytest.raises(InvalidInput):
        defect_services.get_uncorrected_defects(ledger["db"], "", actor=ledger["driver"])


def test_increment_carry_over_adds_one(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    defect_services.increment_carry_over(db, defect.id)
    defect_services.increment_carry_over(db, defect.id)
    db.commit()
    db.refresh(defect)

    assert defect.carried_over_count == 2


def test_increment_carry_over_unknown_defect(ledger):
    with pytest.raises(NotFound):
        defect_services.increment_carry_over(ledger["db"], "missing")


def test_hard_delete_requires_admin(ledger):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    with pytest.raises(Unauthorized):
        defect_services.hard_delete_defect(db, defect_id=defect.id, actor=ledger["manager"])

    assert defect_services.get_defect(db, defect.id) is not None


def test_admin_hard_delete_removes_defect_and_keeps_audit(ledger):
    db = ledger["db"]
    inspection = _inspect(
        db,
        ledger["vehicle"],
        ledger["driver"],
        new_defects=[{"description": "Broken step", "severity": "minor"}],
    )
    defect_id = inspection.new_defect_ids[0]

    defect_services.hard_delete_defect(
        db,
        defect_id=defect_id,
        actor=ledger["admin"],
        reason="entered against wrong coach",
    )

    with pytest.raises(NotFound):
        defect_services.get_defect(db, defect_id)
    event = (
        db.query(audit_models.AuditEvent)
        .filter(
            audit_models.AuditEvent.entity_id == defect_id,
            audit_models.AuditEvent.action == "hard_delete",
        )
        .one()
    )
    assert event.before["description"] == "Broken step"
    assert event.metadata_json == {"reason": "entered against wrong coach"}


def test_hard_delete_leaves_inspection_history_intact(ledger):
    db = ledger["db"]
    first = _inspect(
        db,
        ledger["vehicle"],
        ledger["driver"],
        new_defects=[{"description": "Loose handrail", "severity": "minor"}],
    )
    defect_id = first.new_defect_ids[0]
    second = _inspect(db, ledger["vehicle"], ledger["driver"])
    assert [entry["defect_id"] for entry in second.carried_over_defects] == [defect_id]

    defect_services.hard_delete_defect(db, defect_id=defect_id, actor=ledger["admin"])
    db.expire_all()

    first = inspection_services.get_inspection(db, first.id)
    second = inspection_services.get_inspection(db, second.id)
    assert first.new_defect_ids == [defect_id]
    assert first.has_defects is True
    assert second.carried_over_defects == [
        {"defect_id": defect_id, "carried_over_from_inspection_id": first.id}
    ]
    assert second.has_defects is True

    third = _inspect(db, ledger["vehicle"], ledger["driver"])
    assert third.carried_over_defects == []
    assert third.has_defects is False


def test_audit_write_failure_is_retryable_and_rolled_back(ledger, monkeypatch):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    def _audit_fails(*args, **kwargs):
        raise OperationalError("INSERT INTO audit_events", {}, Exception("disk I/O error"))

    monkeypatch.setattr(audit_services, "create_audit_event", _audit_fails)

    with pytest.raises(StorageFailure) as excinfo:
        defect_services.update_defect_status(
            db,
            defect_id=defect.id,
            new_status="in_progress",
            actor=ledger["mechanic"],
        )

    assert excinfo.value.retryable is True
    monkeypatch.undo()
    db.expire_all()
    assert defect_services.get_defect(db, defect.id).status == defect_models.DefectStatus.OPEN


def test_hard_delete_write_failure_is_retryable(ledger, monkeypatch):
    db = ledger["db"]
    defect = _create_defect(db, ledger["vehicle"], ledger["driver"], ledger["origin"])

    def _audit_fails(*args, **kwargs):
        raise OperationalError("INSERT INTO audit_events", {}, Exception("disk I/O error"))

    monkeypatch.setattr(audit_services, "create_audit_event", _audit_fails)

    with pytest.raises(StorageFailure):
        defect_services.hard_delete_defect(db, defect_id=defect.id, actor=ledger["admin"])

    monkeypatch.undo()
    db.expire_all()
    assert defect_services.get_defect(db, defect.id).id == defect.id
