# app/schemas/job.py
from pydantic import BaseModel
from datetime import datetime
from typing import Any, Optional
from app.models.enums import JobState, JobType


class JobCreate(BaseModel):
    vehicle_id: str
    job_type: JobType
    preferred_depot_id: Optional[str] = None
    earliest_start_at: Optional[datetime] = None
    metadata: Optional[dict[str, Any]] = None


class JobOut(BaseModel):
    id: str
    vehicle_id: str
    depot_id: str
    job_type: JobType
    state: JobState
    resource_id: Optional[str]
    requested_start_at: Optional[datetime]
    scheduled_start_at: Optional[datetime]
    started_at: Optional[datetime]
    eta_seconds: Optional[int]
    completed_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ScheduleOutcome(BaseModel):
    """Result of one PENDING → SCHEDULED attempt. Failures carry a retry hint."""
    success: bool
    job_id: str
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    resource_index: Optional[int] = None
    scheduled_start_at: Optional[datetime] = None
    eta_seconds: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None
    retry: bool = False


class CancelOutcome(BaseModel):
    success: bool
    job_id: str
    message: str
    released_resource_id: Optional[str] = None


class JobIntakeOut(BaseModel):
    job: JobOut
    idempotent: bool = False
    schedule: Optional[ScheduleOutcome] = None


class TickRequest(BaseModel):
    process_transitions: bool = True


class TransitionSweep(BaseModel):
    message: str = "Transitions processed"
    activated: list[str] = []
    completed: list[str] = []


class SchedulerEventOut(BaseModel):
    id: int
    entity_type: str
    entity_id: str
    event_type: str
    payload: Optional[dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True
