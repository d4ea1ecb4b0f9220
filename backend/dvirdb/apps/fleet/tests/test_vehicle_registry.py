from __future__ import annotations

from dvirdb.apps.fleet import router as fleet_router
from dvirdb.apps.fleet import services as fleet_services


def test_list_vehicles_hides_inactive_by_default(db_session, make_vehicle):
    make_vehicle(db_session, unit_number="BUS-020")
    make_vehicle(db_session, unit_number="BUS-010")
    parked = make_vehicle(db_session, unit_number="BUS-030")
    parked.is_active = False
    db_session.commit()

    active = fleet_router.list_vehicles(db=db_session)
    assert [v.unit_number for v in active] == ["BUS-010", "BUS-020"]

    everything = fleet_services.list_vehicles(db_session, active_only=False)
    assert len(everything) == 3


def test_vehicle_lookups(db_session, make_vehicle):
    vehicle = make_vehicle(db_session)

    assert fleet_services.vehicle_exists(db_session, vehicle.id)
    assert not fleet_services.vehicle_exists(db_session, None)
    assert not fleet_services.vehicle_exists(db_session, "missing")
    assert fleet_services.lock_vehicle_row(db_session, vehicle.id).id == vehicle.id
    assert fleet_router.get_vehicle(vehicle_id=vehicle.id, db=db_session).unit_number == vehicle.unit_number
