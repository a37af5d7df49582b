# app/routers/schedule.py
"""
Manual scheduling endpoints.
GET  /stalls                  — charging stalls at a depot, most powerful first
GET  /charging-queue          — idle vehicles, lowest SOC first
POST /schedule-vehicle        — book a charger for a time window (409 on double booking)
POST /assign-detailing        — book a detail bay
POST /optimize-charging-plan  — greedy advisory plan, nothing reserved
GET  /utilization-report      — utilization and recommendations over a window
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.enums import StallStatus
from app.schemas.assignment import (
    AssignDetailingRequest, AssignmentOut, OptimizePlanRequest, ScheduleVehicleRequest,
)
from app.schemas.stall import StallOut
from app.schemas.vehicle import VehicleOut
from app.services import assignment_service
from app.services.assignment_service import CONFLICT, DOUBLE_BOOKED

router = APIRouter()


def _respond(result: assignment_service.AssignmentResult) -> JSONResponse:
    if result.success:
        return JSONResponse(status_code=201, content={
            "assignment": AssignmentOut.model_validate(result.assignment).model_dump(mode="json"),
        })

    content = {"error": result.error}
    if result.conflicting:
        content["conflicting_assignments"] = [
            AssignmentOut.model_validate(a).model_dump(mode="json") for a in result.conflicting
        ]
    status_code = 409 if result.rejection in (DOUBLE_BOOKED, CONFLICT) else 400
    return JSONResponse(status_code=status_code, content=content)


@router.get("/stalls", summary="Charging stalls at a depot")
def list_stalls(depot_id: str, status: Optional[StallStatus] = None, db: Session = Depends(get_db)):
    stalls = assignment_service.list_charging_stalls(db, depot_id, status)
    return {"stalls": [StallOut.model_validate(s) for s in stalls]}


@router.get("/charging-queue", summary="Vehicles waiting to charge")
def charging_queue(depot_id: str, db: Session = Depends(get_db)):
    vehicles = assignment_service.charging_queue(db, depot_id)
    return {"queue": [VehicleOut.model_validate(v) for v in vehicles]}


@router.post("/schedule-vehicle", summary="Book a charging stall for a time window")
def schedule_vehicle(body: ScheduleVehicleRequest, db: Session = Depends(get_db)):
    return _respond(assignment_service.schedule_vehicle(db, body))


@router.post("/assign-detailing", summary="Book a detail bay for a time window")
def assign_detailing(body: AssignDetailingRequest, db: Session = Depends(get_db)):
    return _respond(assignment_service.assign_detailing(db, body))


@router.post("/optimize-charging-plan", summary="Greedy charging plan for a depot")
def optimize_charging_plan(body: OptimizePlanRequest, db: Session = Depends(get_db)):
    return {"plan": assignment_service.optimize_charging_plan(db, body)}


@router.get("/utilization-report", summary="Depot utilization over a time window")
def utilization_report(depot_id: str, start: datetime, end: datetime, db: Session = Depends(get_db)):
    if end <= start:
        raise HTTPException(status_code=400, detail="end must be after start")
    return {"report": assignment_service.utilization_report(db, depot_id, start, end)}
