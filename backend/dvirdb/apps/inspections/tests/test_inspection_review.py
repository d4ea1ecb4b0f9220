from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from dvirdb.apps.accounts.models import AccountRole
from dvirdb.apps.audit import models as audit_models
from dvirdb.apps.audit import services as audit_services
from dvirdb.apps.inspections import models as inspection_models
from dvirdb.apps.inspections import review
from dvirdb.apps.inspections import services as inspection_services
from dvirdb.errors import InvalidInput, InvalidTransition, NotFound, StorageFailure, Unauthorized

Status = inspection_models.InspectionStatusEnum


@pytest.fixture()
def desk(db_session, make_user, make_vehicle):
    return {
        "db": db_session,
        "driver": make_user(db_session, AccountRole.DRIVER),
        "manager": make_user(db_session, AccountRole.FLEET_MANAGER),
        "vehicle": make_vehicle(db_session),
    }


def _submitted(desk, **kwargs) -> inspection_models.Inspection:
    return inspection_services.create_inspection(
        desk["db"],
        vehicle_id=desk["vehicle"].id,
        inspector_id=desk["driver"].id,
        inspection_type="post_trip",
        actor=desk["driver"],
        **kwargs,
    )


def test_approve_submitted_inspection(desk):
    inspection = _submitted(desk)
    when = datetime(2026, 6, 2, 17, 0, tzinfo=timezone.utc)

    approved = review.review_inspection(
        desk["db"],
        inspection_id=inspection.id,
        reviewer=desk["manager"],
        decision="approved",
        notes="All good",
        reviewed_at=when,
    )

    assert approved.status == Status.APPROVED
    assert approved.reviewed_by_user_id == desk["manager"].id
    assert approved.reviewed_at == when
    assert approved.review_notes == "All good"


def test_reviewed_then_approved(desk):
    db = desk["db"]
    inspection = _submitted(desk)

    reviewed = review.review_inspection(
        db, inspection_id=inspection.id, reviewer=desk["manager"], decision=Status.REVIEWED
    )
    assert reviewed.status == Status.REVIEWED
    assert reviewed.reviewed_at is not None

    approved = review.review_inspection(
        db, inspection_id=inspection.id, reviewer=desk["manager"], decision=Status.APPROVED
    )
    assert approved.status == Status.APPROVED

    transitions = (
        db.query(audit_models.AuditEvent)
        .filter(
            audit_models.AuditEvent.entity_id == inspection.id,
            audit_models.AuditEvent.action == "transition",
        )
        .all()
    )
    assert sorted(event.after["status"] for event in transitions) == ["approved", "reviewed", "submitted"]


def test_reviewed_cannot_be_reviewed_again(desk):
    db = desk["db"]
    inspection = _submitted(desk)
    review.review_inspection(db, inspection_id=inspection.id, reviewer=desk["manager"], decision="reviewed")

    with pytest.raises(InvalidTransition):
        review.review_inspection(db, inspection_id=inspection.id, reviewer=desk["manager"], decision="reviewed")


def test_requires_repair_can_be_approved(desk):
    inspection = _submitted(desk, new_defects=[{"description": "Brake fade", "severity": "critical"}])
    assert inspection.status == Status.REQUIRES_REPAIR

    approved = review.review_inspection(
        desk["db"], inspection_id=inspection.id, reviewer=desk["manager"], decision="approved"
    )
    assert approved.status == Status.APPROVED


def test_approved_is_terminal(desk):
    db = desk["db"]
    inspection = _submitted(desk)
    review.review_inspection(db, inspection_id=inspection.id, reviewer=desk["manager"], decision="approved")

    with pytest.raises(InvalidTransition) as excinfo:
        review.review_inspection(db, inspection_id=inspection.id, reviewer=desk["manager"], decision="approved")
    assert excinfo.value.detail[0]["reason"] == "already approved"


def test_draft_has_nothing_to_review(desk):
    db = desk["db"]
    draft = inspection_models.Inspection(
        inspection_number="DVIR-20260101-DRAFT1",
        vehicle_id=desk["vehicle"].id,
        inspector_user_id=desk["driver"].id,
        inspected_at=datetime.now(timezone.utc),
        inspection_type=inspection_models.InspectionTypeEnum.ROUTINE,
        status=Status.DRAFT,
    )
    db.add(draft)
    db.commit()

    with pytest.raises(InvalidTransition) as excinfo:
        review.review_inspection(db, inspection_id=draft.id, reviewer=desk["manager"], decision="approved")
    assert excinfo.value.detail[0]["reason"] == "nothing to review"


def test_driver_cannot_review(desk):
    inspection = _submitted(desk)
    with pytest.raises(Unauthorized):
        review.review_inspection(
            desk["db"], inspection_id=inspection.id, reviewer=desk["driver"], decision="approved"
        )


def test_decision_must_be_reviewed_or_approved(desk):
    inspection = _submitted(desk)
    with pytest.raises(InvalidInput):
        review.review_inspection(
            desk["db"], inspection_id=inspection.id, reviewer=desk["manager"], decision="submitted"
        )


def test_unknown_inspection(desk):
    with pytest.raises(NotFound):
        review.review_inspection(desk["db"], inspection_id="missing", reviewer=desk["manager"], decision="approved")


def test_review_write_failure_is_retryable(desk, monkeypatch):
    inspection = _submitted(desk)

    def _audit_fails(*args, **kwargs):
        raise OperationalError("INSERT INTO audit_events", {}, Exception("database is locked"))

    monkeypatch.setattr(audit_services, "create_audit_event", _audit_fails)

    with pytest.raises(StorageFailure) as excinfo:
        review.review_inspection(
            desk["db"],
            inspection_id=inspection.id,
            reviewer=desk["manager"],
            decision="approved",
        )

    assert excinfo.value.retryable is True
    monkeypatch.undo()
    desk["db"].expire_all()
    assert inspection_services.get_inspection(desk["db"], inspection.id).status == Status.SUBMITTED
