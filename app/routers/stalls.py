# app/routers/stalls.py
"""Depot stalls — allocation, release, metrics, inter-service transitions and maintenance."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.stall import (
    AllocationBody, AllocationRequest, AllocationResult, MaintenanceUpdate, StallOut,
    ThroughputMetrics, TransitionBody, TransitionRequest, TransitionResult,
)
from app.services.resource_manager import ResourceManager

router = APIRouter()


@router.get("/depots/{depot_id}/stalls", response_model=list[StallOut])
def get_depot_stalls(depot_id: str, db: Session = Depends(get_db)):
    """All stalls at a depot, ordered by stall number."""
    return ResourceManager(db).fetch_all_stalls(depot_id)


@router.post("/depots/{depot_id}/allocate", response_model=AllocationResult, status_code=201,
             summary="Reserve the best available stall")
def allocate_stall(depot_id: str, body: AllocationBody, db: Session = Depends(get_db)):
    """
    201 with the reserved stall on success.
    404 when the depot has no stalls of that type, 409 when every stall is taken.
    """
    result = ResourceManager(db).allocate_stall(AllocationRequest(depot_id=depot_id, **body.model_dump()))
    if result.success:
        return result
    status_code = 404 if result.reason == "No stalls found" else 409
    return JSONResponse(status_code=status_code, content=result.model_dump())


@router.post("/stalls/{stall_id}/release", summary="Return a stall to available")
def release_stall(stall_id: str, db: Session = Depends(get_db)):
    if not ResourceManager(db).release_stall(stall_id):
        raise HTTPException(status_code=404, detail=f"Stall '{stall_id}' not found")
    return {"stall_id": stall_id, "status": "available"}


@router.get("/depots/{depot_id}/metrics", response_model=list[ThroughputMetrics])
def get_depot_metrics(depot_id: str, db: Session = Depends(get_db)):
    """Per stall type: counts, utilization, average dwell and queue depth."""
    return ResourceManager(db).get_depot_metrics(depot_id)


@router.post("/depots/{depot_id}/transition", response_model=TransitionResult,
             summary="Move a vehicle to its next service stall")
def transition_vehicle(depot_id: str, body: TransitionBody, db: Session = Depends(get_db)):
    return ResourceManager(db).transition_vehicle(TransitionRequest(depot_id=depot_id, **body.model_dump()))


@router.put("/stalls/{stall_id}/maintenance", summary="Take a stall offline or bring it back")
def set_stall_maintenance(stall_id: str, body: MaintenanceUpdate, db: Session = Depends(get_db)):
    """409 when bringing back online a stall that is reserved or occupied."""
    rm = ResourceManager(db)
    if rm.get_stall(stall_id) is None:
        raise HTTPException(status_code=404, detail=f"Stall '{stall_id}' not found")
    if not rm.mark_stall_maintenance(stall_id, body.offline):
        raise HTTPException(status_code=409, detail=f"Stall '{stall_id}' is in use, release it first")
    return {"stall_id": stall_id, "status": "maintenance" if body.offline else "available"}
