from __future__ import annotations

import pytest
from sqlalchemy.exc import ProgrammingError

from dvirdb.apps.accounts.models import AccountRole
from dvirdb.apps.defects import services as defect_services
from dvirdb.apps.inspections import carry_over
from dvirdb.apps.inspections import services as inspection_services


@pytest.fixture()
def history(db_session, make_user, make_vehicle):
    driver = make_user(db_session, AccountRole.DRIVER)
    mechanic = make_user(db_session, AccountRole.MECHANIC)
    vehicle = make_vehicle(db_session)
    first = inspection_services.create_inspection(
        db_session,
        vehicle_id=vehicle.id,
        inspector_id=driver.id,
        inspection_type="pre_trip",
        new_defects=[
            {"description": "Emergency exit latch sticks", "severity": "major"},
            {"description": "Step light out", "severity": "minor"},
        ],
        actor=driver,
    )
    return db_session, vehicle, first, mechanic


def test_entries_point_at_origin_and_bump_counters_once(history):
    db, vehicle, first, _ = history

    result = carry_over.resolve_carry_over(db, vehicle.id)
    db.commit()

    assert result.degraded is False
    assert [entry.carried_over_from_inspection_id for entry in result.entries] == [first.id, first.id]
    assert sorted(d.id for d in result.defects) == sorted(first.new_defect_ids)
    for defect in result.defects:
        db.refresh(defect)
        assert defect.carried_over_count == 1


def test_corrected_defects_are_skipped(history):
    db, vehicle, first, mechanic = history
    defect_services.mark_corrected(db, defect_id=first.new_defect_ids[0], actor=mechanic)

    result = carry_over.resolve_carry_over(db, vehicle.id)

    assert [d.id for d in result.defects] == [first.new_defect_ids[1]]


def test_excluded_inspection_defects_are_not_carried(history):
    db, vehicle, first, _ = history

    result = carry_over.resolve_carry_over(db, vehicle.id, exclude_inspection_id=first.id)

    assert result.entries == []
    assert result.degraded is False


def test_read_failure_yields_empty_degraded_result(history, monkeypatch):
    db, vehicle, first, _ = history

    def _missing_table(*args, **kwargs):
        raise ProgrammingError("SELECT defects", {}, Exception("relation does not exist"))

    monkeypatch.setattr(defect_services, "list_unresolved", _missing_table)

    result = carry_over.resolve_carry_over(db, vehicle.id)

    assert result.degraded is True
    assert result.entries == []
    assert result.defects == []
