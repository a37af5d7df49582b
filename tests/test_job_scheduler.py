# tests/test_job_scheduler.py
"""Unit tests for the job state machine: intake, scheduling, sweeps and cancellation."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import random
import pytest
from unittest.mock import patch
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from app.models.enums import JobState, JobType, StallStatus, StallType, VehicleStatus
from app.models.job import Job
from app.models.vehicle import Vehicle
from app.schemas.job import JobCreate
from app.services.errors import NotFoundError
from app.services.event_service import list_events
from app.services.job_scheduler import JobScheduler, sample_job_duration
from app.services.stall_store import StallStore
from conftest import make_depot, make_vehicle, stalls_of


@pytest.fixture
def depot(db):
    return make_depot(db, [
        (1, StallType.CHARGE_STANDARD, 50.0),
        (41, StallType.CLEAN_DETAIL, None),
    ])


@pytest.fixture
def vehicle(db, depot):
    return make_vehicle(db, depot.id)


@pytest.fixture
def scheduler(db, clock):
    return JobScheduler(db, rng=random.Random(42), now=clock)


def new_job(scheduler, vehicle, job_type=JobType.CHARGE, key=None):
    job, _ = scheduler.create_job(JobCreate(vehicle_id=vehicle.id, job_type=job_type), idempotency_key=key)
    return job.id


def reload(db, model, id):
    db.expire_all()
    return db.query(model).filter(model.id == id).first()


class TestDurations:
    def test_charge_eta_within_variance(self):
        rng = random.Random(0)
        draws = [sample_job_duration(JobType.CHARGE, rng) for _ in range(500)]
        assert all(1800 <= d <= 3000 for d in draws)

    def test_each_job_type_has_its_own_window(self):
        rng = random.Random(1)
        assert 3600 <= sample_job_duration(JobType.DETAILING, rng) <= 7200
        assert 7200 <= sample_job_duration(JobType.MAINTENANCE, rng) <= 14400
        assert 2700 <= sample_job_duration(JobType.DOWNTIME_PARK, rng) <= 4500


class TestIntake:
    def test_create_records_pending_job(self, db, scheduler, vehicle, depot):
        job_id = new_job(scheduler, vehicle)
        job = reload(db, Job, job_id)

        assert job.state == JobState.PENDING
        assert job.depot_id == depot.id
        assert [e.event_type for e in list_events(db, entity_id=job_id)] == ["JOB_CREATED"]

    def test_idempotency_key_returns_existing_job(self, scheduler, vehicle):
        first, reused_first = scheduler.create_job(JobCreate(vehicle_id=vehicle.id, job_type=JobType.CHARGE), "k-1")
        second, reused_second = scheduler.create_job(JobCreate(vehicle_id=vehicle.id, job_type=JobType.CHARGE), "k-1")

        assert first.id == second.id
        assert (reused_first, reused_second) == (False, True)

    def test_unknown_vehicle(self, scheduler, depot):
        with pytest.raises(NotFoundError):
            scheduler.create_job(JobCreate(vehicle_id="ghost", job_type=JobType.CHARGE))

    def test_unknown_preferred_depot(self, scheduler, vehicle):
        with pytest.raises(NotFoundError):
            scheduler.create_job(JobCreate(vehicle_id=vehicle.id, job_type=JobType.CHARGE,
                                           preferred_depot_id="nowhere"))


class TestScheduling:
    def test_schedule_binds_stall(self, db, scheduler, vehicle, clock):
        job_id = new_job(scheduler, vehicle)

        outcome = scheduler.schedule_job(job_id)

        assert outcome.success is True
        assert outcome.resource_type == "charge_standard"
        assert outcome.resource_index == 1
        assert 1800 <= outcome.eta_seconds <= 3000
        assert outcome.scheduled_start_at == clock()

        job = reload(db, Job, job_id)
        assert job.state == JobState.SCHEDULED
        assert job.resource_id == outcome.resource_id
        stall = StallStore(db).get(outcome.resource_id)
        assert stall.status == StallStatus.RESERVED
        assert stall.current_job_id == job_id
        assert reload(db, Vehicle, vehicle.id).status == VehicleStatus.ENROUTE_DEPOT

    def test_schedule_twice_is_a_no_op(self, scheduler, vehicle):
        job_id = new_job(scheduler, vehicle)
        scheduler.schedule_job(job_id)

        again = scheduler.schedule_job(job_id)

        assert again.success is True
        assert again.message == "Job already processed"

    def test_no_stall_returns_retry(self, db, scheduler, vehicle):
        job_id = new_job(scheduler, vehicle, JobType.MAINTENANCE)

        outcome = scheduler.schedule_job(job_id)

        assert outcome.success is False
        assert outcome.retry is True
        job = reload(db, Job, job_id)
        assert job.state == JobState.PENDING
        assert job.metadata_json["no_resource_available"] is True

    def test_lost_stall_race_returns_retry(self, db, scheduler, vehicle):
        job_id = new_job(scheduler, vehicle)

        with patch.object(scheduler.stalls, "try_reserve", return_value=False):
            outcome = scheduler.schedule_job(job_id)

        assert outcome.error == "Resource conflict"
        assert outcome.retry is True
        assert reload(db, Job, job_id).state == JobState.PENDING

    def test_job_update_failure_releases_claimed_stall(self, db, scheduler, vehicle, depot):
        job_id = new_job(scheduler, vehicle)

        with patch.object(scheduler, "_transition_job",
                          side_effect=OperationalError("UPDATE", {}, Exception("db down"))):
            with pytest.raises(OperationalError):
                scheduler.schedule_job(job_id)

        stall = stalls_of(db, depot.id, StallType.CHARGE_STANDARD)[0]
        assert stall.status == StallStatus.AVAILABLE
        assert stall.current_job_id is None

    def test_job_leaving_pending_mid_schedule_releases_stall(self, db, scheduler, vehicle, depot):
        job_id = new_job(scheduler, vehicle)

        with patch.object(scheduler, "_transition_job", return_value=False):
            outcome = scheduler.schedule_job(job_id)

        assert outcome.success is False
        assert stalls_of(db, depot.id, StallType.CHARGE_STANDARD)[0].status == StallStatus.AVAILABLE

    def test_run_pending_schedules_batch(self, db, scheduler, vehicle):
        other = make_vehicle(db, vehicle.depot_id)
        new_job(scheduler, vehicle)
        new_job(scheduler, other, JobType.DETAILING)

        results = scheduler.run_pending()

        assert len(results) == 2
        assert all(r.success for r in results)
        assert scheduler.run_pending() == []


class TestSweep:
    def test_due_job_becomes_active_and_occupies_stall(self, db, scheduler, vehicle, clock):
        job_id = new_job(scheduler, vehicle)
        outcome = scheduler.schedule_job(job_id)
        clock.advance(1)

        sweep = scheduler.process_transitions()

        assert sweep.activated == [job_id]
        job = reload(db, Job, job_id)
        assert job.state == JobState.ACTIVE
        assert job.started_at == clock()
        assert StallStore(db).get(outcome.resource_id).status == StallStatus.OCCUPIED
        assert reload(db, Vehicle, vehicle.id).status == VehicleStatus.IN_SERVICE

    def test_elapsed_job_completes_and_frees_stall(self, db, scheduler, vehicle, clock):
        job_id = new_job(scheduler, vehicle)
        outcome = scheduler.schedule_job(job_id)
        scheduler.process_transitions()
        db.execute(update(Job).where(Job.id == job_id).values(eta_seconds=2400))
        db.commit()
        clock.advance(2500)

        sweep = scheduler.process_transitions()

        assert sweep.completed == [job_id]
        job = reload(db, Job, job_id)
        assert job.state == JobState.COMPLETED
        assert job.completed_at == clock()
        stall = StallStore(db).get(outcome.resource_id)
        assert stall.status == StallStatus.AVAILABLE
        assert stall.current_vehicle_id is None
        assert reload(db, Vehicle, vehicle.id).status == VehicleStatus.IDLE
        assert list_events(db, entity_id=job_id, limit=1)[0].event_type == "JOB_COMPLETED"

    def test_running_job_is_left_alone(self, db, scheduler, vehicle, clock):
        job_id = new_job(scheduler, vehicle)
        scheduler.schedule_job(job_id)
        scheduler.process_transitions()
        clock.advance(60)

        sweep = scheduler.process_transitions()

        assert sweep.completed == []
        assert reload(db, Job, job_id).state == JobState.ACTIVE

    def test_late_sweep_cannot_release_reassigned_stall(self, db, session_factory, scheduler, vehicle, clock):
        job_id = new_job(scheduler, vehicle)
        stall_id = scheduler.schedule_job(job_id).resource_id
        scheduler.process_transitions()
        clock.advance(4000)
        scheduler.process_transitions()
        # Stall immediately goes to another job
        StallStore(db).try_reserve(stall_id, "veh-next", job_id="job-next")

        late = session_factory()
        try:
            stale = JobScheduler(late, now=clock)
            assert stale._transition_job(job_id, JobState.ACTIVE, JobState.COMPLETED) is False
            assert stale.stalls.release(stall_id, holder_job_id=job_id) is False
        finally:
            late.close()

        assert StallStore(db).get(stall_id).current_job_id == "job-next"


class TestCancellation:
    def test_cancel_scheduled_job_releases_stall(self, db, scheduler, vehicle):
        job_id = new_job(scheduler, vehicle)
        stall_id = scheduler.schedule_job(job_id).resource_id

        outcome = scheduler.cancel_job(job_id)

        assert outcome.success is True
        assert outcome.released_resource_id == stall_id
        assert reload(db, Job, job_id).state == JobState.CANCELLED
        assert StallStore(db).get(stall_id).status == StallStatus.AVAILABLE
        assert reload(db, Vehicle, vehicle.id).status == VehicleStatus.IDLE

    def test_cancel_pending_job(self, db, scheduler, vehicle):
        job_id = new_job(scheduler, vehicle)

        outcome = scheduler.cancel_job(job_id)

        assert outcome.success is True
        assert outcome.released_resource_id is None
        assert reload(db, Job, job_id).state == JobState.CANCELLED

    def test_second_cancel_does_not_release_again(self, db, scheduler, vehicle):
        job_id = new_job(scheduler, vehicle)
        stall_id = scheduler.schedule_job(job_id).resource_id
        scheduler.cancel_job(job_id)
        StallStore(db).try_reserve(stall_id, "veh-next", job_id="job-next")

        outcome = scheduler.cancel_job(job_id)

        assert outcome.message == "Job already cancelled"
        assert StallStore(db).get(stall_id).status == StallStatus.RESERVED

    def test_completed_job_is_absorbing(self, db, scheduler, vehicle, clock):
        job_id = new_job(scheduler, vehicle)
        scheduler.schedule_job(job_id)
        scheduler.process_transitions()
        clock.advance(4000)
        scheduler.process_transitions()

        outcome = scheduler.cancel_job(job_id)

        assert outcome.message == "Job already completed"
        assert reload(db, Job, job_id).state == JobState.COMPLETED

    def test_cancel_unknown_job(self, scheduler):
        with pytest.raises(NotFoundError):
            scheduler.cancel_job("missing")
