# app/routers/pipelines.py
"""
AV service pipelines — arrival, step chaining, deployment and the transition log.
Fixed paths (/pipelines/events, /pipelines/counts, ...) are declared before /pipelines/{vehicle_id}.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_orchestrator
from app.models.enums import PipelineState
from app.schemas.pipeline import ArrivalRequest, LifecycleCounts, ServicePipelineOut, TransitionEventOut
from app.services import depot_service
from app.services.resource_manager import ResourceManager

router = APIRouter()


def _depot_for(vehicle, depot_id: Optional[str]) -> str:
    depot_id = depot_id or vehicle.depot_id
    if not depot_id:
        raise HTTPException(status_code=400, detail=f"Vehicle '{vehicle.id}' has no depot; pass depot_id")
    return depot_id


def _pipeline_or_404(pipeline, vehicle_id: str):
    if pipeline is None:
        raise HTTPException(status_code=404, detail=f"No pipeline for vehicle '{vehicle_id}'")
    return pipeline


@router.post("/pipelines/arrival", response_model=ServicePipelineOut, status_code=201,
             summary="Vehicle arrived — build its service pipeline")
def trigger_arrival(body: ArrivalRequest, db: Session = Depends(get_db), orchestrator=Depends(get_orchestrator)):
    """
    Predicts due services, orders them (charging last) and starts the first step.
    Stalls are soft-assigned from the depot's current snapshot; nothing is reserved.
    """
    vehicle = depot_service.get_vehicle(db, body.vehicle_id)
    depot_id = _depot_for(vehicle, body.depot_id)
    depot_service.get_depot(db, depot_id)
    stalls = ResourceManager(db).fetch_all_stalls(depot_id)
    durations = body.threshold_durations if body.threshold_durations is not None else orchestrator.engine.durations()
    return orchestrator.trigger_arrival(vehicle, stalls, durations)


@router.get("/pipelines", response_model=list[ServicePipelineOut])
def list_pipelines(state: Optional[PipelineState] = None, orchestrator=Depends(get_orchestrator)):
    pipelines = orchestrator.get_pipelines()
    if state is not None:
        pipelines = [p for p in pipelines if p.state == state]
    return pipelines


@router.get("/pipelines/events", response_model=list[TransitionEventOut], summary="Transition log, newest first")
def get_events(limit: int = 50, orchestrator=Depends(get_orchestrator)):
    return orchestrator.get_events()[:limit]


@router.get("/pipelines/counts", response_model=LifecycleCounts)
def get_counts(orchestrator=Depends(get_orchestrator)):
    return orchestrator.counts()


@router.post("/pipelines/simulate", summary="Demo: advance active steps by a random amount")
def simulate_progress(orchestrator=Depends(get_orchestrator)):
    advanced = orchestrator.simulate_progress()
    return {"status": "ok", "steps_completed": advanced, "counts": orchestrator.counts()}


@router.post("/pipelines/reset", summary="Demo: clear all pipelines and the transition log")
def reset_pipelines(orchestrator=Depends(get_orchestrator)):
    orchestrator.reset()
    return {"status": "reset"}


@router.get("/pipelines/{vehicle_id}", response_model=ServicePipelineOut)
def get_pipeline(vehicle_id: str, orchestrator=Depends(get_orchestrator)):
    return _pipeline_or_404(orchestrator.get_pipeline(vehicle_id), vehicle_id)


@router.post("/pipelines/{vehicle_id}/advance", response_model=ServicePipelineOut,
             summary="Complete the current step and start the next")
def advance_pipeline(vehicle_id: str, orchestrator=Depends(get_orchestrator)):
    return _pipeline_or_404(orchestrator.advance_pipeline(vehicle_id), vehicle_id)


@router.post("/pipelines/{vehicle_id}/resume", response_model=ServicePipelineOut,
             summary="Retry a blocked step against the current stall snapshot")
def resume_pipeline(vehicle_id: str, depot_id: Optional[str] = None, db: Session = Depends(get_db),
                    orchestrator=Depends(get_orchestrator)):
    _pipeline_or_404(orchestrator.get_pipeline(vehicle_id), vehicle_id)
    vehicle = depot_service.get_vehicle(db, vehicle_id)
    stalls = ResourceManager(db).fetch_all_stalls(_depot_for(vehicle, depot_id))
    return orchestrator.resume_pipeline(vehicle_id, stalls)


@router.post("/pipelines/{vehicle_id}/deploy", response_model=ServicePipelineOut, summary="STAGING → DEPLOYED")
def deploy_vehicle(vehicle_id: str, orchestrator=Depends(get_orchestrator)):
    pipeline = _pipeline_or_404(orchestrator.deploy_vehicle(vehicle_id), vehicle_id)
    if pipeline.state != PipelineState.DEPLOYED:
        raise HTTPException(status_code=409,
                            detail=f"Vehicle '{vehicle_id}' is {pipeline.state.value}, not ready to deploy")
    return pipeline
