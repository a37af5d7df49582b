# app/services/av_orchestrator.py
"""
AV orchestrator — drives a vehicle visit through the depot without operator input.

Lifecycle:
  ARRIVED → QUEUED → IN_SERVICE (one step at a time) → STAGING → DEPLOYED

On arrival the threshold engine decides which services are due; they are laid out
as an ordered pipeline of steps, each soft-assigned to a stall from the snapshot the
caller passes in. Soft assignment does not reserve anything in the store: it is an
estimate, the same way the 5-minute transition buffer is. A step with no free stall
becomes `blocked` until resume_pipeline() finds one.

Pipelines and the transition log live in the injected PipelineRepository.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from app.models.enums import (
    PipelineState, ServiceType, StallStatus, StallType, StepStatus,
)
from app.schemas.pipeline import LifecycleCounts
from app.services.energy_model import demand_forecast, energy_arbitrage
from app.services.pipeline_repository import InMemoryPipelineRepository, PipelineRepository
from app.services.threshold_engine import ThresholdEngine
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Dry work first, charge last so the vehicle leaves at high SOC
SERVICE_SEQUENCE_PRIORITY = (
    ServiceType.DETAIL_CLEAN,
    ServiceType.TIRE_ROTATION,
    ServiceType.BATTERY_HEALTH_CHECK,
    ServiceType.FULL_SERVICE,
    ServiceType.CHARGE,
)

SERVICE_TO_STALL = {
    ServiceType.CHARGE: StallType.CHARGE_STANDARD,
    ServiceType.DETAIL_CLEAN: StallType.CLEAN_DETAIL,
    ServiceType.TIRE_ROTATION: StallType.SERVICE_BAY,
    ServiceType.BATTERY_HEALTH_CHECK: StallType.SERVICE_BAY,
    ServiceType.FULL_SERVICE: StallType.SERVICE_BAY,
}

CHARGE_BELOW_SOC = 90
TRANSITION_BUFFER = timedelta(minutes=5)
DEFAULT_STEP_MINUTES = 30
SURGE_MULTIPLIER = 2.0
FAST_CHARGER_WINDOW_HOURS = 2


@dataclass
class PipelineStep:
    id: str
    service_type: ServiceType
    stall_type: StallType
    assigned_stall_id: Optional[str]
    assigned_stall_number: Optional[int]
    duration_minutes: int
    estimated_start_time: datetime
    estimated_end_time: datetime
    actual_start_time: Optional[datetime] = None
    actual_end_time: Optional[datetime] = None
    status: StepStatus = StepStatus.PENDING
    progress: float = 0.0


@dataclass
class ServicePipeline:
    vehicle_id: str
    vehicle_make_model: str
    arrival_time: datetime
    estimated_ready_time: datetime
    total_duration_minutes: int
    steps: list = field(default_factory=list)
    state: PipelineState = PipelineState.ARRIVED
    current_step_index: int = -1

    @property
    def current_step(self) -> Optional[PipelineStep]:
        if 0 <= self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None


@dataclass
class TransitionEvent:
    timestamp: datetime
    vehicle_id: str
    from_state: PipelineState
    to_state: PipelineState
    label: str
    stall_id: Optional[str] = None


def pick_stall(stalls, service_type: ServiceType, charge_recommendation: str = "standard"):
    """
    First available stall of the service's type from a snapshot.
    Charging honours the charger recommendation: fast looks at fast chargers first,
    standard at standard chargers first, each falling back to the other kind.
    """
    if service_type == ServiceType.CHARGE:
        if charge_recommendation == "fast":
            preference = (StallType.CHARGE_FAST, StallType.CHARGE_STANDARD)
        else:
            preference = (StallType.CHARGE_STANDARD, StallType.CHARGE_FAST)
    else:
        preference = (SERVICE_TO_STALL[service_type],)

    for stall_type in preference:
        for stall in stalls:
            if stall.stall_type == stall_type and stall.status == StallStatus.AVAILABLE:
                return stall
    return None


class AVOrchestrator:
    def __init__(
        self,
        engine: Optional[ThresholdEngine] = None,
        repository: Optional[PipelineRepository] = None,
        rng: Optional[random.Random] = None,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.now = now
        self.engine = engine or ThresholdEngine(now=now)
        self.repository = repository or InMemoryPipelineRepository()
        self.rng = rng or random.Random()
        self.surge_multiplier = 1.0

    # ── Intake ─────────────────────────────────────────────────────────────
    def trigger_arrival(self, vehicle, available_stalls, threshold_durations: Optional[dict] = None) -> ServicePipeline:
        """
        Build the service pipeline for an arriving vehicle and start its first step.
        Replaces any previous pipeline for the same vehicle.
        """
        durations = threshold_durations or {}
        recommendation = self.engine.charge_recommendation(vehicle)

        needed = {n.service_type for n in self.engine.predicted_needs(vehicle)}
        if vehicle.current_soc_percent < CHARGE_BELOW_SOC:
            needed.add(ServiceType.CHARGE)
        ordered = [s for s in SERVICE_SEQUENCE_PRIORITY if s in needed]

        arrival = self.now()
        cursor = arrival
        steps = []
        for index, service in enumerate(ordered):
            duration = durations.get(service, DEFAULT_STEP_MINUTES)
            stall = pick_stall(available_stalls, service, recommendation)
            end = cursor + timedelta(minutes=duration)
            steps.append(PipelineStep(
                id=f"{vehicle.id}-{service.value}-{index}",
                service_type=service,
                stall_type=stall.stall_type if stall else SERVICE_TO_STALL[service],
                assigned_stall_id=stall.id if stall else None,
                assigned_stall_number=stall.stall_number if stall else None,
                duration_minutes=duration,
                estimated_start_time=cursor,
                estimated_end_time=end,
            ))
            cursor = end + TRANSITION_BUFFER

        pipeline = ServicePipeline(
            vehicle_id=vehicle.id,
            vehicle_make_model=f"{vehicle.make or ''} {vehicle.model or ''}".strip(),
            arrival_time=arrival,
            estimated_ready_time=cursor,
            total_duration_minutes=round((cursor - arrival).total_seconds() / 60),
            steps=steps,
        )
        self.repository.save(pipeline)
        self._log_event(pipeline.vehicle_id, PipelineState.ARRIVED, PipelineState.QUEUED, "Intake complete")
        pipeline.state = PipelineState.QUEUED
        logger.info(
            f"🚗 Arrival {vehicle.id}: {len(steps)} step(s) "
            f"[{', '.join(s.service_type.value for s in steps)}]"
        )

        self.advance_pipeline(vehicle.id)
        return pipeline

    # ── Task chaining ──────────────────────────────────────────────────────
    def advance_pipeline(self, vehicle_id: str) -> Optional[ServicePipeline]:
        """
        Complete the current step and start the next one.
        No-op once the pipeline is staged or deployed, and while the current step is blocked.
        """
        pipeline = self.repository.get(vehicle_id)
        if pipeline is None:
            return None
        if pipeline.state in (PipelineState.STAGING, PipelineState.DEPLOYED):
            return pipeline

        current = pipeline.current_step
        if current is not None and current.status == StepStatus.BLOCKED:
            return pipeline

        previous_state = pipeline.state
        if current is not None:
            current.status = StepStatus.COMPLETED
            current.progress = 100.0
            current.actual_end_time = self.now()
            previous_state = PipelineState.TRANSITIONING

        pipeline.current_step_index += 1

        if pipeline.current_step_index >= len(pipeline.steps):
            pipeline.state = PipelineState.STAGING
            self.repository.save(pipeline)
            from_state = PipelineState.IN_SERVICE if current is not None else previous_state
            self._log_event(vehicle_id, from_state, PipelineState.STAGING, "All services complete")
            logger.info(f"✅ {vehicle_id} staged for deployment")
            return pipeline

        step = pipeline.steps[pipeline.current_step_index]
        if step.assigned_stall_id is None:
            step.status = StepStatus.BLOCKED
            pipeline.state = PipelineState.QUEUED
            self.repository.save(pipeline)
            self._log_event(vehicle_id, previous_state, PipelineState.QUEUED,
                            f"Waiting for {step.service_type.value} stall")
            logger.info(f"⏳ {vehicle_id} blocked on {step.service_type.value}")
            return pipeline

        self._start_step(pipeline, step, previous_state)
        return pipeline

    def resume_pipeline(self, vehicle_id: str, available_stalls) -> Optional[ServicePipeline]:
        """Retry a blocked step against a fresh stall snapshot."""
        pipeline = self.repository.get(vehicle_id)
        if pipeline is None:
            return None
        step = pipeline.current_step
        if step is None or step.status != StepStatus.BLOCKED:
            return pipeline

        stall = pick_stall(available_stalls, step.service_type)
        if stall is None:
            return pipeline

        step.assigned_stall_id = stall.id
        step.assigned_stall_number = stall.stall_number
        step.stall_type = stall.stall_type
        self._start_step(pipeline, step, pipeline.state)
        return pipeline

    def deploy_vehicle(self, vehicle_id: str) -> Optional[ServicePipeline]:
        """STAGING → DEPLOYED. Pipelines in any other state are returned untouched."""
        pipeline = self.repository.get(vehicle_id)
        if pipeline is None or pipeline.state != PipelineState.STAGING:
            return pipeline
        pipeline.state = PipelineState.DEPLOYED
        self.repository.save(pipeline)
        self._log_event(vehicle_id, PipelineState.STAGING, PipelineState.DEPLOYED, "Deployed for service")
        logger.info(f"🚀 {vehicle_id} deployed")
        return pipeline

    def simulate_progress(self) -> int:
        """
        Demo driver: push every active step forward by 5–20 points and advance
        the pipeline when a step reaches 100. Returns the number of steps advanced.
        """
        advanced = 0
        for pipeline in self.repository.all():
            if pipeline.state != PipelineState.IN_SERVICE:
                continue
            step = pipeline.current_step
            if step is None or step.status != StepStatus.ACTIVE:
                continue
            step.progress = min(100.0, step.progress + self.rng.uniform(5, 20))
            self.repository.save(pipeline)
            if step.progress >= 100:
                self.advance_pipeline(pipeline.vehicle_id)
                advanced += 1
        return advanced

    # ── Accessors ──────────────────────────────────────────────────────────
    def get_pipeline(self, vehicle_id: str) -> Optional[ServicePipeline]:
        return self.repository.get(vehicle_id)

    def get_pipelines(self) -> list:
        return self.repository.all()

    def get_events(self) -> list:
        """Newest first."""
        return list(reversed(self.repository.events()))

    def counts(self) -> LifecycleCounts:
        pipelines = self.repository.all()
        states = [p.state for p in pipelines]
        return LifecycleCounts(
            total=len(pipelines),
            queued=states.count(PipelineState.QUEUED),
            in_service=states.count(PipelineState.IN_SERVICE) + states.count(PipelineState.TRANSITIONING),
            staged=states.count(PipelineState.STAGING),
            deployed=states.count(PipelineState.DEPLOYED),
        )

    def reset(self) -> None:
        self.repository.clear()
        self.surge_multiplier = 1.0
        logger.info("🔄 Orchestrator state cleared")

    # ── Demand & energy ────────────────────────────────────────────────────
    def get_demand_forecast(self, is_surge: bool = False, multiplier: Optional[float] = None):
        if multiplier is None:
            multiplier = SURGE_MULTIPLIER if is_surge else self.surge_multiplier
        return demand_forecast(self.now(), multiplier, self.counts().staged)

    def set_surge_multiplier(self, multiplier: float) -> None:
        self.surge_multiplier = multiplier
        logger.info(f"📈 Surge multiplier set to {multiplier}")

    def charger_priority(self, hours_until_needed: float) -> str:
        return "fast" if hours_until_needed <= FAST_CHARGER_WINDOW_HOURS else "standard"

    def compute_energy_arbitrage(self, vehicle_count: int):
        return energy_arbitrage(vehicle_count, self.now())

    # ── Internals ──────────────────────────────────────────────────────────
    def _start_step(self, pipeline: ServicePipeline, step: PipelineStep, from_state: PipelineState):
        step.status = StepStatus.ACTIVE
        step.actual_start_time = self.now()
        pipeline.state = PipelineState.IN_SERVICE
        self.repository.save(pipeline)
        self._log_event(
            pipeline.vehicle_id, from_state, PipelineState.IN_SERVICE,
            f"{step.service_type.value} at stall #{step.assigned_stall_number}",
            stall_id=step.assigned_stall_id,
        )

    def _log_event(self, vehicle_id: str, from_state, to_state, label: str, stall_id: Optional[str] = None):
        self.repository.append_event(TransitionEvent(
            timestamp=self.now(),
            vehicle_id=vehicle_id,
            from_state=from_state,
            to_state=to_state,
            label=label,
            stall_id=stall_id,
        ))
