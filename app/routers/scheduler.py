# app/routers/scheduler.py
"""
Scheduler drivers for external timers.
POST /scheduler/tick — SCHEDULED→ACTIVE and ACTIVE→COMPLETED sweep
POST /scheduler/run  — schedule a bounded batch of PENDING jobs
"""

from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_rng
from app.schemas.job import TickRequest, TransitionSweep
from app.services.job_scheduler import JobScheduler

router = APIRouter()


@router.post("/scheduler/tick", response_model=TransitionSweep, summary="Run the job transition sweep")
def tick(body: Optional[TickRequest] = None, db: Session = Depends(get_db)):
    body = body or TickRequest()
    if not body.process_transitions:
        return TransitionSweep(message="No action taken")
    return JobScheduler(db).process_transitions()


@router.post("/scheduler/run", summary="Schedule pending jobs")
def run_pending(limit: Optional[int] = None, db: Session = Depends(get_db), rng=Depends(get_rng)):
    results = JobScheduler(db, rng=rng).run_pending(limit)
    return {"results": [r.model_dump(mode="json") for r in results]}
