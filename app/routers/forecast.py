# app/routers/forecast.py
"""Demand forecast, surge control, charger priority and time-of-use energy arbitrage."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_orchestrator
from app.models.vehicle import Vehicle
from app.schemas.pipeline import DemandWindow, EnergyArbitrageOut, SurgeUpdate

router = APIRouter()


@router.get("/forecast/demand", response_model=list[DemandWindow], summary="Hourly vehicle demand vs staged supply")
def get_demand_forecast(surge: bool = False, multiplier: Optional[float] = Query(None, gt=0),
                        orchestrator=Depends(get_orchestrator)):
    return orchestrator.get_demand_forecast(is_surge=surge, multiplier=multiplier)


@router.put("/forecast/surge", summary="Set the default demand multiplier")
def set_surge(body: SurgeUpdate, orchestrator=Depends(get_orchestrator)):
    orchestrator.set_surge_multiplier(body.multiplier)
    return {"surge_multiplier": body.multiplier, "status": "updated"}


@router.get("/forecast/charger-priority", summary="Fast or standard charger for a vehicle needed soon")
def get_charger_priority(hours_until_needed: float = Query(..., ge=0), orchestrator=Depends(get_orchestrator)):
    return {"hours_until_needed": hours_until_needed,
            "charger_type": orchestrator.charger_priority(hours_until_needed)}


@router.get("/energy/arbitrage", response_model=EnergyArbitrageOut, summary="Off-peak charging savings")
def get_energy_arbitrage(vehicle_count: Optional[int] = Query(None, ge=0), db: Session = Depends(get_db),
                         orchestrator=Depends(get_orchestrator)):
    """vehicle_count defaults to the registered fleet size."""
    if vehicle_count is None:
        vehicle_count = db.query(func.count(Vehicle.id)).scalar() or 0
    return orchestrator.compute_energy_arbitrage(vehicle_count)
