# tests/conftest.py
"""Shared fixtures: a file-backed SQLite database per test, a controllable clock and row builders."""

import sys
import os
import tempfile
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before app.config is imported anywhere
_TMP = tempfile.mkdtemp(prefix="depot-scheduler-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'app.db')}"
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))
os.environ["API_KEY"] = ""

import pytest
from datetime import datetime, timedelta
from sqlalchemy.orm import sessionmaker
from app.database import build_engine, create_tables
from app.models.depot import Depot
from app.models.enums import StallStatus, StallType, VehicleStatus
from app.models.stall import Stall
from app.models.vehicle import Vehicle

# Wednesday 17:00
START = datetime(2026, 3, 4, 17, 0, 0)


class Clock:
    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float):
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'depot.db'}")
    create_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return Clock()


def make_depot(db, stalls=(), name="Test Depot") -> Depot:
    """stalls: iterable of (stall_number, stall_type, charger_power_kw[, status])."""
    depot = Depot(name=name, created_at=START)
    db.add(depot)
    db.flush()
    for row in stalls:
        number, stall_type, power = row[:3]
        status = row[3] if len(row) > 3 else StallStatus.AVAILABLE
        db.add(Stall(depot_id=depot.id, stall_number=number, stall_type=stall_type,
                     charger_power_kw=power, status=status))
    db.commit()
    return depot


def make_vehicle(db, depot_id, **fields) -> Vehicle:
    values = dict(make="Tesla", model="Model Y", battery_capacity_kwh=75.0,
                  current_soc_percent=50.0, status=VehicleStatus.IDLE)
    values.update(fields)
    vehicle = Vehicle(depot_id=depot_id, **values)
    db.add(vehicle)
    db.commit()
    return vehicle


def stalls_of(db, depot_id, stall_type=None) -> list[Stall]:
    db.expire_all()
    q = db.query(Stall).filter(Stall.depot_id == depot_id)
    if stall_type is not None:
        q = q.filter(Stall.stall_type == stall_type)
    return q.order_by(Stall.stall_number.asc()).all()


CHARGERS = [
    (1, StallType.CHARGE_STANDARD, 50.0),
    (2, StallType.CHARGE_FAST, 250.0),
]
