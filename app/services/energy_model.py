# app/services/energy_model.py
"""
Demand forecasting and time-of-use energy arbitrage.
Pure functions over fixed lookup tables; the caller supplies the clock reading.

Tiers:  off-peak 22:00–06:00 $0.06/kWh   shoulder 06:00–14:00 and 20:00–22:00 $0.09   peak otherwise $0.14
Most charging is deliberately shifted into off-peak hours, hence the per-tier kWh per vehicle.
"""

import math
from datetime import datetime
from app.schemas.pipeline import DemandWindow, EnergyArbitrageOut, HourlyConsumption

WEEKDAY_DEMAND = (
    2, 2, 2, 2, 3, 4,       # 00–05
    8, 8, 8, 6, 5, 5,       # 06–11
    5, 5, 6, 7, 8,          # 12–16
    10, 10, 10, 7, 5, 3, 2,  # 17–23
)

WEEKEND_DEMAND = (
    2, 2, 2, 2, 2, 3,
    4, 5, 5, 5, 5, 5,
    5, 5, 5, 5, 5,
    5, 5, 5, 4, 3, 3, 2,
)

OFF_PEAK, SHOULDER, PEAK = "Off-Peak", "Shoulder", "Peak"

TIER_RATES = {OFF_PEAK: 0.06, SHOULDER: 0.09, PEAK: 0.14}
TIER_KWH_PER_VEHICLE = {OFF_PEAK: 3.5, SHOULDER: 0.8, PEAK: 0.3}
PEAK_RATE = TIER_RATES[PEAK]
TIER_BOUNDARIES = (6, 14, 20, 22)


def _round_half_up(value: float, digits: int = 0):
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


def tier_name(hour: int) -> str:
    if hour >= 22 or hour < 6:
        return OFF_PEAK
    if 6 <= hour < 14 or 20 <= hour < 22:
        return SHOULDER
    return PEAK


def rate_for_hour(hour: int) -> float:
    return TIER_RATES[tier_name(hour)]


def minutes_until_next_tier_change(hour: int, minute: int = 0) -> int:
    current = hour * 60 + minute
    for boundary in TIER_BOUNDARIES:
        if boundary * 60 > current:
            return boundary * 60 - current
    # past 22:00, next change is 06:00 tomorrow
    return (24 * 60 - current) + TIER_BOUNDARIES[0] * 60


def is_weekend(moment: datetime) -> bool:
    return moment.weekday() >= 5


def demand_forecast(moment: datetime, multiplier: float, staged_count: int) -> list[DemandWindow]:
    pattern = WEEKEND_DEMAND if is_weekend(moment) else WEEKDAY_DEMAND
    windows = []
    for hour in range(24):
        needed = _round_half_up(pattern[hour] * multiplier)
        windows.append(DemandWindow(
            label=f"{hour:02d}:00",
            start_hour=hour,
            end_hour=(hour + 1) % 24,
            vehicles_needed=needed,
            vehicles_available=staged_count,
            deficit=max(0, needed - staged_count),
        ))
    return windows


def energy_arbitrage(vehicle_count: int, moment: datetime) -> EnergyArbitrageOut:
    hourly = []
    total_kwh = total_cost = peak_cost = 0.0

    for hour in range(24):
        tier = tier_name(hour)
        rate = TIER_RATES[tier]
        kwh = vehicle_count * TIER_KWH_PER_VEHICLE[tier]
        total_kwh += kwh
        total_cost += kwh * rate
        peak_cost += kwh * PEAK_RATE
        hourly.append(HourlyConsumption(hour=hour, kwh=_round_half_up(kwh, 1), rate=rate))

    savings = peak_cost - total_cost
    return EnergyArbitrageOut(
        total_kwh_consumed=_round_half_up(total_kwh),
        avg_cost_per_kwh=_round_half_up(total_cost / max(total_kwh, 1), 3),
        savings_vs_peak_dollars=_round_half_up(savings, 2),
        savings_percent=_round_half_up(savings / max(peak_cost, 1) * 100),
        projected_monthly_savings=_round_half_up(savings * 30, 2),
        hourly_consumption=hourly,
        current_rate_tier=tier_name(moment.hour),
        minutes_until_rate_change=minutes_until_next_tier_change(moment.hour, moment.minute),
    )
