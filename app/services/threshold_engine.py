# app/services/threshold_engine.py
"""
Threshold engine — predicts which services a vehicle needs on arrival.

Each threshold compares one vehicle reading against a limit:
  days     days since the last service of that kind
  miles    miles driven since the last service (days × avg daily miles)
  percent  state of charge (lower is worse)

urgency = min(100, ratio^1.5 × 100): stays low until ~60% of the threshold, then climbs.
Needs below MIN_URGENCY are dropped. Offline vehicles have no needs.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
from app.models.enums import ServiceType, VehicleStatus

MIN_URGENCY = 15
DEFAULT_DURATION_MINUTES = 30


@dataclass(frozen=True)
class ServiceThreshold:
    service_type: ServiceType
    unit: str                    # days | miles | percent
    value: float
    duration_minutes: int


DEFAULT_THRESHOLDS = (
    ServiceThreshold(ServiceType.CHARGE, "percent", 20, 45),
    ServiceThreshold(ServiceType.DETAIL_CLEAN, "days", 14, 30),
    ServiceThreshold(ServiceType.TIRE_ROTATION, "miles", 7500, 45),
    ServiceThreshold(ServiceType.BATTERY_HEALTH_CHECK, "days", 90, 20),
    ServiceThreshold(ServiceType.FULL_SERVICE, "miles", 15000, 120),
)


@dataclass
class PredictedNeed:
    service_type: ServiceType
    urgency: float
    reason: str


class ThresholdEngine:
    def __init__(self, thresholds=DEFAULT_THRESHOLDS, now: Callable[[], datetime] = datetime.utcnow):
        self.thresholds = list(thresholds)
        self.now = now

    def durations(self) -> dict:
        return {t.service_type: t.duration_minutes for t in self.thresholds}

    def predicted_needs(self, vehicle) -> list[PredictedNeed]:
        """Needs sorted by urgency, highest first."""
        if vehicle.status == VehicleStatus.OFFLINE:
            return []
        needs = []
        for t in self.thresholds:
            current = self._reading(vehicle, t)
            if current is None:
                continue
            if t.unit == "percent":
                # 100% SOC → 0, threshold+20 below that → 1
                ratio = max(0.0, (t.value + 20 - current) / (t.value + 20))
            else:
                ratio = current / t.value
            urgency = max(0.0, min(100.0, ratio ** 1.5 * 100))
            if urgency < MIN_URGENCY:
                continue
            needs.append(PredictedNeed(t.service_type, round(urgency, 1),
                                       f"{round(current)} {t.unit} (threshold: {t.value:g} {t.unit})"))
        return sorted(needs, key=lambda n: n.urgency, reverse=True)

    def charge_recommendation(self, vehicle) -> str:
        """'fast' below 35% SOC, otherwise 'standard'."""
        return "fast" if vehicle.current_soc_percent < 35 else "standard"

    def _reading(self, vehicle, t: ServiceThreshold) -> Optional[float]:
        if t.service_type == ServiceType.CHARGE:
            return vehicle.current_soc_percent if t.unit == "percent" else None
        if t.service_type == ServiceType.FULL_SERVICE:
            # approximate miles since last full service from the odometer
            return (vehicle.odometer_miles or 0) % t.value if t.unit == "miles" else None

        last = {
            ServiceType.DETAIL_CLEAN: vehicle.last_detail_date,
            ServiceType.TIRE_ROTATION: vehicle.last_tire_rotation_date,
            ServiceType.BATTERY_HEALTH_CHECK: vehicle.last_battery_health_check,
        }[t.service_type]
        if last is None:
            return None
        days = max(0.0, (self.now() - last).total_seconds() / 86400)
        if t.unit == "days":
            return days
        if t.unit == "miles":
            return days * (vehicle.avg_daily_miles or 0)
        return None
