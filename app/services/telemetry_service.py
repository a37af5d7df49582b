# app/services/telemetry_service.py
"""
Vehicle telemetry intake.

Each report updates the vehicle row and is logged as a VEHICLE_TELEMETRY event.
A state of charge at or below CHARGE_TRIGGER_SOC_PERCENT queues a CHARGE job unless
the vehicle already has one that is not finished.
"""

import random
from datetime import datetime
from typing import Callable, Optional
from sqlalchemy.orm import Session
from app.config import settings
from app.models.enums import TERMINAL_JOB_STATES, JobType
from app.models.job import Job
from app.schemas.job import JobCreate, JobIntakeOut, JobOut
from app.schemas.vehicle import TelemetryResult, TelemetryUpdate, VehicleOut
from app.services.depot_service import get_vehicle
from app.services.event_service import record_event
from app.services.job_scheduler import JobScheduler
from app.utils.logger import get_logger

logger = get_logger(__name__)


def open_charge_job(db: Session, vehicle_id: str) -> Optional[Job]:
    return (
        db.query(Job)
        .filter(
            Job.vehicle_id == vehicle_id,
            Job.job_type == JobType.CHARGE,
            Job.state.notin_(TERMINAL_JOB_STATES),
        )
        .first()
    )


def ingest_telemetry(db: Session, vehicle_id: str, body: TelemetryUpdate,
                     rng: Optional[random.Random] = None,
                     now: Callable[[], datetime] = datetime.utcnow) -> TelemetryResult:
    vehicle = get_vehicle(db, vehicle_id)
    reported_at = body.ts or now()

    fields = body.model_dump(exclude_none=True, exclude={"ts"})
    for name, value in fields.items():
        setattr(vehicle, name, value)
    db.commit()

    record_event(db, "VEHICLE_TELEMETRY", vehicle.id,
                 {**fields, "ts": reported_at.isoformat()}, entity_type="VEHICLE", now=now())

    triggered = None
    soc = body.current_soc_percent
    if soc is not None and soc <= settings.CHARGE_TRIGGER_SOC_PERCENT:
        existing = open_charge_job(db, vehicle.id)
        if existing:
            logger.info(f"🔋 Vehicle {vehicle.id} at {soc}% already has charge job {existing.id} ({existing.state.value})")
        else:
            logger.info(f"🔋 Vehicle {vehicle.id} at {soc}%, queueing charge job")
            scheduler = JobScheduler(db, rng=rng, now=now)
            job, _ = scheduler.create_job(JobCreate(
                vehicle_id=vehicle.id,
                job_type=JobType.CHARGE,
                metadata={"auto_triggered": True, "trigger_soc": soc},
            ))
            outcome = scheduler.schedule_job(job.id)
            db.refresh(job)
            triggered = JobIntakeOut(job=JobOut.model_validate(job), schedule=outcome)

    db.refresh(vehicle)
    return TelemetryResult(vehicle=VehicleOut.model_validate(vehicle), job_triggered=triggered)
