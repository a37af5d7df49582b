# app/services/resource_manager.py
"""
Stall allocation, conflict resolution and throughput metrics for one depot store.

Allocation picks the best available stall by a weighted score, then tries to reserve
candidates in strictly descending score order with a conditional update. Losing a race
moves on to the next candidate; nothing here waits on a lock.

Score weights (sum to 1.0):
  proximity    0.30  lower stall number = closer to the entrance
  power match  0.25  fast chargers (>= 150 kW) for urgent requests, standard otherwise
  load balance 0.20  odd/even stall numbers sit on two electrical circuits
  sequential   0.25  closeness to the section of the vehicle's next service
"""

import math
from datetime import datetime
from typing import Callable, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.config import settings
from app.models.enums import (
    CHARGE_STALL_TYPES, JOB_STALL_TYPES, OCCUPIED_STATUSES, JobState, StallStatus, StallType,
)
from app.models.job import Job
from app.models.stall import Stall
from app.schemas.stall import (
    AllocationRequest, AllocationResult, ThroughputMetrics, TransitionRequest, TransitionResult,
)
from app.services.stall_store import StallStore
from app.utils.logger import get_logger

logger = get_logger(__name__)

SCORE_PROXIMITY = 0.30
SCORE_POWER_MATCH = 0.25
SCORE_LOAD_BALANCE = 0.20
SCORE_SEQUENTIAL = 0.25

FAST_CHARGER_KW = 150
URGENT_THRESHOLD = 70

# Stall-number section of each type in the standard depot layout
SECTION_RANGES = {
    StallType.CHARGE_STANDARD: (1, 30),
    StallType.CHARGE_FAST: (31, 40),
    StallType.CLEAN_DETAIL: (41, 50),
    StallType.SERVICE_BAY: (51, 51),
    StallType.STAGING: (52, 61),
}
MAX_SECTION_DISTANCE = 61


def matching_stall_types(stall_type: StallType) -> tuple:
    """Standard and fast chargers substitute for each other; other types only match themselves."""
    if stall_type in CHARGE_STALL_TYPES:
        return CHARGE_STALL_TYPES
    return (stall_type,)


def score_stall(stall: Stall, req: AllocationRequest, all_stalls: list[Stall]) -> float:
    max_number = max([s.stall_number for s in all_stalls] + [1])
    proximity = 1 - stall.stall_number / max_number

    power = 0.5
    if stall.stall_type in CHARGE_STALL_TYPES:
        is_fast = (stall.charger_power_kw or 0) >= FAST_CHARGER_KW
        wants_fast = req.urgency > URGENT_THRESHOLD
        power = 1.0 if is_fast == wants_fast else 0.3

    circuit = stall.stall_number % 2
    on_circuit = [s for s in all_stalls if s.stall_number % 2 == circuit]
    loaded = sum(1 for s in on_circuit if s.status in OCCUPIED_STATUSES)
    load = 1 - loaded / len(on_circuit) if on_circuit else 0.5

    sequential = 0.5
    if req.next_stall_type is not None:
        low, high = SECTION_RANGES[req.next_stall_type]
        distance = abs(stall.stall_number - (low + high) / 2)
        sequential = 1 - distance / MAX_SECTION_DISTANCE

    return (
        proximity * SCORE_PROXIMITY
        + power * SCORE_POWER_MATCH
        + load * SCORE_LOAD_BALANCE
        + sequential * SCORE_SEQUENTIAL
    )


def rank_candidates(available: list[Stall], req: AllocationRequest, all_stalls: list[Stall]) -> list[tuple[Stall, float]]:
    """Descending score; sorted() is stable so ties keep input order."""
    scored = [(s, score_stall(s, req, all_stalls)) for s in available]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _utilization_status(pct: int) -> str:
    if pct > 85:
        return "critical"
    if pct > 70:
        return "busy"
    if pct < 50:
        return "underutilized"
    return "optimal"


class ResourceManager:
    def __init__(self, db: Session, now: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.now = now
        self.store = StallStore(db, now=now)

    # ── 1. Allocation ────────────────────────────────────────────────────
    def allocate_stall(self, req: AllocationRequest) -> AllocationResult:
        stalls = self.store.fetch_depot_stalls(req.depot_id, matching_stall_types(req.stall_type))
        if not stalls:
            return AllocationResult(success=False, reason="No stalls found")

        available = [s for s in stalls if s.status == StallStatus.AVAILABLE]
        if not available:
            waitlist = sum(1 for s in stalls if s.status != StallStatus.MAINTENANCE)
            logger.info(f"[ALLOC] {req.vehicle_id}: no {req.stall_type.value} free, waitlist={waitlist}")
            return AllocationResult(success=False, reason="All stalls occupied", waitlist_position=waitlist)

        # Snapshot ids before the first commit expires the loaded rows
        ranked = [(s.id, s.stall_number, score) for s, score in rank_candidates(available, req, stalls)]

        for stall_id, stall_number, score in ranked:
            if self.store.try_reserve(stall_id, req.vehicle_id):
                logger.info(f"[ALLOC] {req.vehicle_id} → stall #{stall_number} (score={score:.3f})")
                return AllocationResult(success=True, stall_id=stall_id, stall_number=stall_number)

        logger.warning(f"[ALLOC] {req.vehicle_id}: all {len(ranked)} candidates taken by other callers")
        return AllocationResult(success=False, reason="Conflict: all candidates taken")

    def release_stall(self, stall_id: str) -> bool:
        """Idempotent. False only when the stall does not exist."""
        released = self.store.release(stall_id)
        if released:
            logger.info(f"[RELEASE] stall {stall_id} available")
        return released

    # ── 2. Throughput metrics ────────────────────────────────────────────
    def get_depot_metrics(self, depot_id: str) -> list[ThroughputMetrics]:
        stalls = self.store.fetch_depot_stalls(depot_id)
        pending = self._pending_jobs_by_stall_type(depot_id)
        now = self.now()
        metrics = []

        for stall_type in StallType:
            of_type = [s for s in stalls if s.stall_type == stall_type]
            total = len(of_type)
            if total == 0:
                metrics.append(ThroughputMetrics(
                    stall_type=stall_type, total=0, occupied=0, available=0, maintenance=0,
                    utilization_pct=0, avg_dwell_minutes=0,
                    queue_depth=pending.get(stall_type, 0), status="optimal",
                ))
                continue

            busy = [s for s in of_type if s.status in OCCUPIED_STATUSES]
            available = sum(1 for s in of_type if s.status == StallStatus.AVAILABLE)
            maintenance = sum(1 for s in of_type if s.status == StallStatus.MAINTENANCE)
            in_service = total - maintenance
            util = _round_half_up(len(busy) / in_service * 100) if in_service else 0

            dwell = [(now - s.session_started_at).total_seconds() / 60 for s in busy if s.session_started_at]
            avg_dwell = _round_half_up(sum(dwell) / len(dwell)) if dwell else 0

            metrics.append(ThroughputMetrics(
                stall_type=stall_type,
                total=total,
                occupied=len(busy),
                available=available,
                maintenance=maintenance,
                utilization_pct=util,
                avg_dwell_minutes=avg_dwell,
                queue_depth=pending.get(stall_type, 0),
                status=_utilization_status(util),
            ))
        return metrics

    def _pending_jobs_by_stall_type(self, depot_id: str) -> dict:
        rows = (
            self.db.query(Job.job_type, func.count(Job.id))
            .filter(Job.depot_id == depot_id, Job.state == JobState.PENDING)
            .group_by(Job.job_type)
            .all()
        )
        depth: dict = {}
        for job_type, count in rows:
            for stall_type in JOB_STALL_TYPES[job_type]:
                depth[stall_type] = depth.get(stall_type, 0) + count
        return depth

    # ── 3. Transitions between services ──────────────────────────────────
    def transition_vehicle(self, req: TransitionRequest) -> TransitionResult:
        # Release first so no stall stays held by a vehicle that has left it
        self.release_stall(req.from_stall_id)

        result = self.allocate_stall(AllocationRequest(
            vehicle_id=req.vehicle_id,
            stall_type=req.to_stall_type,
            depot_id=req.depot_id,
            urgency=settings.TRANSITION_DEFAULT_URGENCY,
            is_member=False,
        ))
        if result.success:
            return TransitionResult(success=True, new_stall_id=result.stall_id,
                                    new_stall_number=result.stall_number)

        # Flat estimate; no queue model behind it
        return TransitionResult(success=False, queued_for_wait=True,
                                estimated_wait_seconds=settings.TRANSITION_DEFAULT_WAIT_SECONDS)

    # ── 4. Maintenance ───────────────────────────────────────────────────
    def mark_stall_maintenance(self, stall_id: str, offline: bool) -> bool:
        if offline:
            changed = self.store.force_maintenance(stall_id)
        else:
            changed = self.store.restore_from_maintenance(stall_id)
            if not changed:
                stall = self.store.get(stall_id)
                # Already online counts as restored
                return stall is not None and stall.status == StallStatus.AVAILABLE
        if changed:
            logger.info(f"[MAINT] stall {stall_id} {'offline' if offline else 'back online'}")
        return changed

    def fetch_all_stalls(self, depot_id: str) -> list[Stall]:
        return self.store.fetch_depot_stalls(depot_id)

    def get_stall(self, stall_id: str) -> Optional[Stall]:
        return self.store.get(stall_id)
