# tests/test_threshold_engine.py
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from types import SimpleNamespace
from datetime import timedelta
from app.models.enums import ServiceType, VehicleStatus
from app.services.threshold_engine import ServiceThreshold, ThresholdEngine
from conftest import Clock


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def engine(clock):
    return ThresholdEngine(now=clock)


def telemetry(**fields):
    values = dict(current_soc_percent=100.0, odometer_miles=0, avg_daily_miles=0.0,
                  last_detail_date=None, last_tire_rotation_date=None,
                  last_battery_health_check=None, status=VehicleStatus.IDLE)
    values.update(fields)
    return SimpleNamespace(**values)


def urgency_of(needs, service_type):
    return next(n.urgency for n in needs if n.service_type == service_type)


class TestUrgency:
    def test_empty_battery_is_maximally_urgent(self, engine):
        needs = engine.predicted_needs(telemetry(current_soc_percent=0))
        assert urgency_of(needs, ServiceType.CHARGE) == 100

    def test_soc_at_threshold(self, engine):
        needs = engine.predicted_needs(telemetry(current_soc_percent=20))
        assert urgency_of(needs, ServiceType.CHARGE) == 35.4
        assert needs[0].reason == "20 percent (threshold: 20 percent)"

    def test_overdue_detail_is_capped_at_100(self, engine, clock):
        needs = engine.predicted_needs(telemetry(last_detail_date=clock() - timedelta(days=30)))
        assert urgency_of(needs, ServiceType.DETAIL_CLEAN) == 100

    def test_half_way_detail(self, engine, clock):
        needs = engine.predicted_needs(telemetry(last_detail_date=clock() - timedelta(days=7)))
        assert urgency_of(needs, ServiceType.DETAIL_CLEAN) == 35.4

    def test_low_urgency_is_dropped(self, engine, clock):
        needs = engine.predicted_needs(telemetry(last_detail_date=clock() - timedelta(days=3)))
        assert needs == []

    def test_tire_rotation_uses_daily_miles(self, engine, clock):
        vehicle = telemetry(last_tire_rotation_date=clock() - timedelta(days=60), avg_daily_miles=100)
        needs = engine.predicted_needs(vehicle)
        assert urgency_of(needs, ServiceType.TIRE_ROTATION) == 71.6

    def test_full_service_from_odometer(self, engine):
        needs = engine.predicted_needs(telemetry(odometer_miles=27000))
        assert urgency_of(needs, ServiceType.FULL_SERVICE) == 71.6

    def test_missing_service_dates_are_skipped(self, engine):
        assert engine.predicted_needs(telemetry()) == []

    def test_needs_sorted_by_urgency(self, engine, clock):
        vehicle = telemetry(current_soc_percent=20, last_detail_date=clock() - timedelta(days=14))
        needs = engine.predicted_needs(vehicle)
        assert [n.service_type for n in needs] == [ServiceType.DETAIL_CLEAN, ServiceType.CHARGE]

    def test_offline_vehicle_has_no_needs(self, engine):
        vehicle = telemetry(current_soc_percent=0, status=VehicleStatus.OFFLINE)
        assert engine.predicted_needs(vehicle) == []


class TestConfiguration:
    def test_default_durations(self, engine):
        durations = engine.durations()
        assert durations[ServiceType.CHARGE] == 45
        assert durations[ServiceType.FULL_SERVICE] == 120

    def test_custom_thresholds(self, clock):
        engine = ThresholdEngine([ServiceThreshold(ServiceType.DETAIL_CLEAN, "days", 7, 15)], now=clock)
        needs = engine.predicted_needs(telemetry(current_soc_percent=0,
                                                 last_detail_date=clock() - timedelta(days=7)))
        assert [n.service_type for n in needs] == [ServiceType.DETAIL_CLEAN]
        assert needs[0].urgency == 100

    @pytest.mark.parametrize("soc,expected", [(10, "fast"), (34.9, "fast"), (35, "standard"), (80, "standard")])
    def test_charge_recommendation(self, engine, soc, expected):
        assert engine.charge_recommendation(telemetry(current_soc_percent=soc)) == expected
