# app/services/job_scheduler.py
"""
Job lifecycle state machine.

  PENDING ──schedule_job──▶ SCHEDULED ──sweep (start time reached)──▶ ACTIVE ──sweep (eta elapsed)──▶ COMPLETED
     └──────────────┴────────────── cancel_job ──────────────────────────┴──▶ CANCELLED

Every job state change is a conditional update on the expected current state, and every
stall claim is a conditional update on stall status. Whoever wins the job transition into
COMPLETED/CANCELLED is the only one that releases the stall, so it is released exactly once.

The sweep is driven externally (POST /scheduler/tick or the in-process tick loop) and
handles bounded batches per call.
"""

import random
from datetime import datetime, timedelta
from typing import Callable, Optional
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.config import settings
from app.models.enums import JOB_STALL_TYPES, TERMINAL_JOB_STATES, JobState, JobType, VehicleStatus
from app.models.depot import Depot
from app.models.job import Job
from app.models.vehicle import Vehicle
from app.schemas.job import CancelOutcome, JobCreate, ScheduleOutcome, TransitionSweep
from app.services.errors import NotFoundError
from app.services.event_service import record_event
from app.services.stall_store import StallStore
from app.utils.logger import get_logger

logger = get_logger(__name__)

# (average, variance) in seconds
JOB_DURATIONS = {
    JobType.CHARGE: (2400, 600),          # 40 min ± 10 min
    JobType.DETAILING: (5400, 1800),      # 90 min ± 30 min
    JobType.MAINTENANCE: (10800, 3600),   # 3 hr ± 1 hr
    JobType.DOWNTIME_PARK: (3600, 900),   # 1 hr ± 15 min
}


def sample_job_duration(job_type: JobType, rng: random.Random) -> int:
    avg, variance = JOB_DURATIONS.get(job_type, JOB_DURATIONS[JobType.CHARGE])
    return int(avg + rng.uniform(-variance, variance))


class JobScheduler:
    def __init__(self, db: Session, rng: Optional[random.Random] = None,
                 now: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.rng = rng or random.Random()
        self.now = now
        self.stalls = StallStore(db, now=now)

    # ── Intake ───────────────────────────────────────────────────────────
    def create_job(self, body: JobCreate, idempotency_key: Optional[str] = None) -> tuple[Job, bool]:
        """Insert a PENDING job. Returns (job, reused) where reused means the idempotency key matched."""
        if idempotency_key:
            existing = self.db.query(Job).filter(Job.idempotency_key == idempotency_key).first()
            if existing:
                logger.info(f"[INTAKE] idempotency key {idempotency_key} → existing job {existing.id}")
                return existing, True

        vehicle = self.db.query(Vehicle).filter(Vehicle.id == body.vehicle_id).first()
        if not vehicle:
            raise NotFoundError("Vehicle", body.vehicle_id)

        depot_id = body.preferred_depot_id or vehicle.depot_id
        if not depot_id or not self.db.query(Depot).filter(Depot.id == depot_id).first():
            raise NotFoundError("Depot", depot_id or "(vehicle has no depot)")

        job = Job(
            vehicle_id=vehicle.id,
            depot_id=depot_id,
            job_type=body.job_type,
            state=JobState.PENDING,
            requested_start_at=body.earliest_start_at or self.now(),
            metadata_json=body.metadata or {},
            idempotency_key=idempotency_key,
            created_at=self.now(),
        )
        self.db.add(job)
        self.db.commit()
        logger.info(f"[INTAKE] job {job.id}: {body.job_type.value} for vehicle {vehicle.id} at depot {depot_id}")
        record_event(self.db, "JOB_CREATED", job.id,
                     {"vehicle_id": vehicle.id, "job_type": body.job_type.value, "depot_id": depot_id},
                     now=self.now())
        return job, False

    def get_job(self, job_id: str) -> Job:
        job = self.db.query(Job).filter(Job.id == job_id).first()
        if not job:
            raise NotFoundError("Job", job_id)
        return job

    # ── PENDING → SCHEDULED ──────────────────────────────────────────────
    def schedule_job(self, job_id: str) -> ScheduleOutcome:
        job = self.get_job(job_id)

        if job.state != JobState.PENDING:
            logger.info(f"Job {job_id} already processed ({job.state.value})")
            return ScheduleOutcome(success=True, job_id=job_id, message="Job already processed")

        vehicle_id, depot_id, job_type = job.vehicle_id, job.depot_id, job.job_type
        candidates = self.stalls.fetch_available(depot_id, JOB_STALL_TYPES[job_type],
                                                 settings.SCHEDULER_CANDIDATE_LIMIT)
        if not candidates:
            logger.info(f"No stall for {job_type.value} available at depot {depot_id}")
            job.metadata_json = {**(job.metadata_json or {}), "no_resource_available": True,
                                 "last_check_at": self.now().isoformat()}
            self.db.commit()
            return ScheduleOutcome(success=False, job_id=job_id, error="No resources available", retry=True)

        stall = candidates[0]
        stall_id, stall_type, stall_number = stall.id, stall.stall_type, stall.stall_number
        eta_seconds = sample_job_duration(job_type, self.rng)
        scheduled_start_at = self.now()

        if not self.stalls.try_reserve(stall_id, vehicle_id, job_id=job_id):
            logger.warning(f"Stall {stall_id} taken while scheduling job {job_id}")
            return ScheduleOutcome(success=False, job_id=job_id, error="Resource conflict", retry=True)

        try:
            moved = self._transition_job(job_id, JobState.PENDING, JobState.SCHEDULED,
                                         resource_id=stall_id,
                                         scheduled_start_at=scheduled_start_at,
                                         eta_seconds=eta_seconds)
        except SQLAlchemyError:
            # No distributed transaction: undo the claim by hand
            self.stalls.release(stall_id, holder_job_id=job_id)
            raise

        if not moved:
            self.stalls.release(stall_id, holder_job_id=job_id)
            logger.warning(f"Job {job_id} left PENDING during scheduling — stall {stall_id} rolled back")
            return ScheduleOutcome(success=False, job_id=job_id, error="Job state changed during scheduling")

        self._set_vehicle_status(vehicle_id, VehicleStatus.ENROUTE_DEPOT)
        record_event(self.db, "JOB_SCHEDULED", job_id, {
            "vehicle_id": vehicle_id,
            "depot_id": depot_id,
            "resource_id": stall_id,
            "resource_type": stall_type.value,
            "resource_index": stall_number,
            "eta_seconds": eta_seconds,
        }, now=self.now())
        logger.info(f"Scheduled job {job_id}: {job_type.value} at {stall_type.value}-{stall_number}")

        return ScheduleOutcome(
            success=True,
            job_id=job_id,
            resource_id=stall_id,
            resource_type=stall_type.value,
            resource_index=stall_number,
            scheduled_start_at=scheduled_start_at,
            eta_seconds=eta_seconds,
        )

    def run_pending(self, limit: Optional[int] = None) -> list[ScheduleOutcome]:
        """Schedule a bounded batch of PENDING jobs, oldest first."""
        job_ids = [
            row.id for row in
            self.db.query(Job.id)
            .filter(Job.state == JobState.PENDING)
            .order_by(Job.created_at.asc())
            .limit(limit or settings.SCHEDULER_RUN_LIMIT)
            .all()
        ]
        return [self.schedule_job(job_id) for job_id in job_ids]

    # ── Time-driven sweep ────────────────────────────────────────────────
    def process_transitions(self) -> TransitionSweep:
        now = self.now()
        sweep = TransitionSweep()

        # SCHEDULED → ACTIVE
        due = (
            self.db.query(Job)
            .filter(Job.state == JobState.SCHEDULED, Job.scheduled_start_at <= now)
            .limit(settings.SCHEDULER_BATCH_SIZE)
            .all()
        )
        for job_id, vehicle_id, resource_id, eta in [(j.id, j.vehicle_id, j.resource_id, j.eta_seconds) for j in due]:
            if not self._transition_job(job_id, JobState.SCHEDULED, JobState.ACTIVE, started_at=now):
                continue
            if resource_id:
                completion = now + timedelta(seconds=eta) if eta else None
                self.stalls.mark_occupied(resource_id, job_id, estimated_completion_at=completion)
            self._set_vehicle_status(vehicle_id, VehicleStatus.IN_SERVICE)
            record_event(self.db, "JOB_ACTIVE", job_id, {"vehicle_id": vehicle_id}, now=now)
            sweep.activated.append(job_id)

        # ACTIVE → COMPLETED
        active = (
            self.db.query(Job)
            .filter(Job.state == JobState.ACTIVE, Job.started_at.isnot(None), Job.eta_seconds.isnot(None))
            .limit(settings.SCHEDULER_BATCH_SIZE)
            .all()
        )
        finished = [
            (j.id, j.vehicle_id, j.resource_id, (now - j.started_at).total_seconds())
            for j in active
            if (now - j.started_at).total_seconds() >= j.eta_seconds
        ]
        for job_id, vehicle_id, resource_id, elapsed in finished:
            if not self._transition_job(job_id, JobState.ACTIVE, JobState.COMPLETED, completed_at=now):
                continue
            if resource_id:
                self.stalls.release(resource_id, holder_job_id=job_id)
            self._set_vehicle_status(vehicle_id, VehicleStatus.IDLE)
            record_event(self.db, "JOB_COMPLETED", job_id,
                         {"vehicle_id": vehicle_id, "duration_seconds": elapsed}, now=now)
            sweep.completed.append(job_id)

        if sweep.activated or sweep.completed:
            logger.info(f"[SWEEP] activated={len(sweep.activated)} completed={len(sweep.completed)}")
        return sweep

    # ── Cancellation ─────────────────────────────────────────────────────
    def cancel_job(self, job_id: str) -> CancelOutcome:
        job = self.get_job(job_id)
        state = job.state
        if state in TERMINAL_JOB_STATES:
            return CancelOutcome(success=True, job_id=job_id,
                                 message=f"Job already {state.value.lower()}")

        vehicle_id, resource_id = job.vehicle_id, job.resource_id
        if not self._transition_job(job_id, state, JobState.CANCELLED, completed_at=self.now()):
            # Another caller moved the job first; report what it is now
            return CancelOutcome(success=False, job_id=job_id,
                                 message=f"Job changed state to {self.get_job(job_id).state.value}, retry cancel")

        released = None
        if resource_id:
            self.stalls.release(resource_id, holder_job_id=job_id)
            released = resource_id
            logger.info(f"Freed stall {resource_id} from cancelled job {job_id}")

        record_event(self.db, "JOB_CANCELLED", job_id,
                     {"vehicle_id": vehicle_id, "reason": "manual_cancellation"}, now=self.now())
        self._set_vehicle_status(vehicle_id, VehicleStatus.IDLE)
        return CancelOutcome(success=True, job_id=job_id, message="Job cancelled successfully",
                             released_resource_id=released)

    # ── Helpers ──────────────────────────────────────────────────────────
    def _transition_job(self, job_id: str, expected: JobState, new: JobState, **fields) -> bool:
        try:
            result = self.db.execute(
                update(Job)
                .where(Job.id == job_id, Job.state == expected)
                .values(state=new, updated_at=self.now(), **fields)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Job {job_id} update {expected.value} → {new.value} failed", exc_info=True)
            raise
        return result.rowcount == 1

    def _set_vehicle_status(self, vehicle_id: str, status: VehicleStatus):
        self.db.query(Vehicle).filter(Vehicle.id == vehicle_id).update(
            {Vehicle.status: status, Vehicle.updated_at: self.now()}, synchronize_session=False
        )
        self.db.commit()
