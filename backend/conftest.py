from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.setdefault("VEHICLE_LOCK_TIMEOUT_SEC", "10")

from dvirdb.database import Base, engine_kwargs  # noqa: E402
from dvirdb.apps.accounts import models as account_models  # noqa: E402
from dvirdb.apps.audit import models as audit_models  # noqa: E402,F401
from dvirdb.apps.defects import models as defect_models  # noqa: E402,F401
from dvirdb.apps.fleet import models as fleet_models  # noqa: E402
from dvirdb.apps.inspections import models as inspection_models  # noqa: E402,F401


def _session_factory(url: str):
    engine = create_engine(url, **engine_kwargs(url))
    Base.metadata.create_all(bind=engine)
    return engine, sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session():
    engine, TestingSession = _session_factory("sqlite+pysqlite:///:memory:")
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def file_session_factory(tmp_path):
    """Session factory over a file database, for tests that use several connections."""
    engine, TestingSession = _session_factory(f"sqlite+pysqlite:///{tmp_path / 'dvir.db'}")
    try:
        yield TestingSession
    finally:
        engine.dispose()


@pytest.fixture()
def make_user():
    counter = {"n": 0}

    def _make(db, role=account_models.AccountRole.DRIVER, *, is_active=True) -> account_models.User:
        counter["n"] += 1
        user = account_models.User(
            email=f"{role.value.lower()}{counter['n']}@example.com",
            full_name=f"{role.value.title()} {counter['n']}",
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture()
def make_vehicle():
    counter = {"n": 0}

    def _make(db, unit_number=None) -> fleet_models.Vehicle:
        counter["n"] += 1
        vehicle = fleet_models.Vehicle(
            unit_number=unit_number or f"BUS-{counter['n']:03d}",
            name="Motor coach",
            seating_capacity=56,
        )
        db.add(vehicle)
        db.commit()
        return vehicle

    return _make
