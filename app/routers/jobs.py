# app/routers/jobs.py
"""
Job intake, lookup, scheduling and cancellation.
POST /jobs               — create a PENDING job and try to schedule it straight away
POST /jobs/{id}/schedule — retry scheduling; 500 with retry=true when no stall could be claimed
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_rng
from app.models.enums import JobState
from app.models.job import Job
from app.schemas.job import CancelOutcome, JobCreate, JobIntakeOut, JobOut, ScheduleOutcome, SchedulerEventOut
from app.services.event_service import list_events
from app.services.job_scheduler import JobScheduler

router = APIRouter()


@router.post("/jobs", response_model=JobIntakeOut, status_code=201, summary="Create a job")
def create_job(
    body: JobCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    rng=Depends(get_rng),
):
    """
    Creates the job and immediately attempts to schedule it.
    A repeated Idempotency-Key returns the original job without scheduling again.
    """
    scheduler = JobScheduler(db, rng=rng)
    job, reused = scheduler.create_job(body, idempotency_key)
    if reused:
        return JobIntakeOut(job=JobOut.model_validate(job), idempotent=True)

    outcome = scheduler.schedule_job(job.id)
    db.refresh(job)
    return JobIntakeOut(job=JobOut.model_validate(job), schedule=outcome)


@router.get("/jobs", response_model=list[JobOut], summary="List jobs")
def list_jobs(
    state: Optional[JobState] = None,
    vehicle_id: Optional[str] = None,
    depot_id: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    q = db.query(Job)
    if state is not None:
        q = q.filter(Job.state == state)
    if vehicle_id:
        q = q.filter(Job.vehicle_id == vehicle_id)
    if depot_id:
        q = q.filter(Job.depot_id == depot_id)
    return q.order_by(Job.created_at.desc()).limit(limit).all()


@router.get("/jobs/{job_id}", response_model=JobOut)
def get_job(job_id: str, db: Session = Depends(get_db)):
    return JobScheduler(db).get_job(job_id)


@router.get("/jobs/{job_id}/events", response_model=list[SchedulerEventOut], summary="Lifecycle events for a job")
def get_job_events(job_id: str, limit: int = 50, db: Session = Depends(get_db)):
    JobScheduler(db).get_job(job_id)
    return list_events(db, entity_id=job_id, limit=limit)


@router.post("/jobs/{job_id}/schedule", response_model=ScheduleOutcome)
def schedule_job(job_id: str, db: Session = Depends(get_db), rng=Depends(get_rng)):
    outcome = JobScheduler(db, rng=rng).schedule_job(job_id)
    if not outcome.success:
        return JSONResponse(status_code=500, content=outcome.model_dump(mode="json"))
    return outcome


@router.post("/jobs/{job_id}/cancel", response_model=CancelOutcome)
def cancel_job(job_id: str, db: Session = Depends(get_db)):
    outcome = JobScheduler(db).cancel_job(job_id)
    if not outcome.success:
        return JSONResponse(status_code=409, content=outcome.model_dump(mode="json"))
    return outcome
