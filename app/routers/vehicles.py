# app/routers/vehicles.py
"""Fleet vehicles — registration, lookup, telemetry and predicted service needs."""

from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_orchestrator, get_rng
from app.models.enums import VehicleStatus
from app.schemas.vehicle import (
    ServiceNeedOut, TelemetryResult, TelemetryUpdate, VehicleCreate, VehicleOut, VehicleServiceNeeds,
)
from app.services import depot_service, telemetry_service

router = APIRouter()


@router.get("/vehicles", response_model=list[VehicleOut], summary="List fleet vehicles")
def list_vehicles(depot_id: Optional[str] = None, status: Optional[VehicleStatus] = None,
                  db: Session = Depends(get_db)):
    return depot_service.list_vehicles(db, depot_id, status)


@router.post("/vehicles", response_model=VehicleOut, status_code=201, summary="Register a vehicle")
def register_vehicle(body: VehicleCreate, db: Session = Depends(get_db)):
    return depot_service.register_vehicle(db, body)


@router.get("/vehicles/{vehicle_id}", response_model=VehicleOut)
def get_vehicle(vehicle_id: str, db: Session = Depends(get_db)):
    return depot_service.get_vehicle(db, vehicle_id)


@router.get("/vehicles/{vehicle_id}/service-needs", response_model=VehicleServiceNeeds,
            summary="Services the threshold engine says are due")
def get_service_needs(vehicle_id: str, db: Session = Depends(get_db), orchestrator=Depends(get_orchestrator)):
    vehicle = depot_service.get_vehicle(db, vehicle_id)
    engine = orchestrator.engine
    return VehicleServiceNeeds(
        vehicle_id=vehicle.id,
        needs=[ServiceNeedOut.model_validate(n) for n in engine.predicted_needs(vehicle)],
        charge_recommendation=engine.charge_recommendation(vehicle),
    )


@router.post("/vehicles/{vehicle_id}/telemetry", response_model=TelemetryResult,
             summary="Report state of charge and odometer")
def report_telemetry(vehicle_id: str, body: TelemetryUpdate, db: Session = Depends(get_db), rng=Depends(get_rng)):
    """Low charge queues a CHARGE job unless one is already open for the vehicle."""
    return telemetry_service.ingest_telemetry(db, vehicle_id, body, rng=rng)
