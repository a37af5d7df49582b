# tests/test_depot_service.py
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from collections import Counter
from app.models.enums import StallType, VehicleStatus
from app.schemas.depot import DepotCreate
from app.schemas.vehicle import VehicleCreate
from app.services import depot_service
from app.services.errors import NotFoundError
from conftest import stalls_of


class TestDepots:
    def test_standard_layout_sections(self):
        layout = depot_service.standard_layout()
        assert [row[0] for row in layout] == list(range(1, 62))
        assert Counter(row[1] for row in layout) == {
            StallType.CHARGE_STANDARD: 30,
            StallType.CHARGE_FAST: 10,
            StallType.CLEAN_DETAIL: 10,
            StallType.SERVICE_BAY: 1,
            StallType.STAGING: 10,
        }
        assert layout[0][2] == 50.0
        assert layout[30] == (31, StallType.CHARGE_FAST, 250.0)
        assert layout[40][2] is None

    def test_create_seeds_layout(self, db):
        depot = depot_service.create_depot(db, DepotCreate(name="North", location_address="1 Depot Rd"))
        assert len(stalls_of(db, depot.id)) == 61

    def test_create_without_layout(self, db):
        depot = depot_service.create_depot(db, DepotCreate(name="Empty", seed_standard_layout=False))
        assert stalls_of(db, depot.id) == []
        assert [d.name for d in depot_service.list_depots(db)] == ["Empty"]

    def test_unknown_depot(self, db):
        with pytest.raises(NotFoundError):
            depot_service.get_depot(db, "nowhere")


class TestVehicles:
    def test_register_vehicle_starts_idle(self, db):
        depot = depot_service.create_depot(db, DepotCreate(name="North", seed_standard_layout=False))

        vehicle = depot_service.register_vehicle(db, VehicleCreate(
            depot_id=depot.id, make="Zoox", model="VH6", current_soc_percent=42))

        assert vehicle.status == VehicleStatus.IDLE
        assert vehicle.make_model == "Zoox VH6"
        assert depot_service.get_vehicle(db, vehicle.id).current_soc_percent == 42

    def test_register_into_unknown_depot(self, db):
        with pytest.raises(NotFoundError):
            depot_service.register_vehicle(db, VehicleCreate(depot_id="nowhere"))

    def test_list_filters(self, db):
        depot = depot_service.create_depot(db, DepotCreate(name="North", seed_standard_layout=False))
        depot_service.register_vehicle(db, VehicleCreate(depot_id=depot.id))
        depot_service.register_vehicle(db, VehicleCreate())

        assert len(depot_service.list_vehicles(db)) == 2
        assert len(depot_service.list_vehicles(db, depot_id=depot.id)) == 1
        assert depot_service.list_vehicles(db, status=VehicleStatus.CHARGING) == []

    def test_unknown_vehicle(self, db):
        with pytest.raises(NotFoundError):
            depot_service.get_vehicle(db, "ghost")
