# app/services/assignment_service.py
"""
Manual scheduling: time-windowed charging and detailing assignments, a greedy
charging plan, and a utilization report over a time window.

Reservations go through StallStore's conditional update exactly like the
allocation path, so a manual booking can never take a stall another caller
already won. Rejections come back as AssignmentResult, unknown ids raise NotFoundError.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.models.depot import Depot
from app.models.enums import CHARGE_STALL_TYPES, StallStatus, StallType, VehicleStatus
from app.models.schedule_assignment import ScheduleAssignment
from app.models.stall import Stall
from app.models.vehicle import Vehicle
from app.schemas.assignment import (
    AssignDetailingRequest, ChargingPlanOut, OptimizePlanRequest, PlanMetrics,
    PlannedAssignment, ScheduleVehicleRequest, UtilizationReportOut,
)
from app.services.errors import NotFoundError
from app.services.stall_store import StallStore
from app.utils.logger import get_logger

logger = get_logger(__name__)

CLOSED_ASSIGNMENT_STATUSES = ("completed", "cancelled")
TARGET_SOC = 80
PLAN_STAGGER = timedelta(minutes=10)

# rejection → HTTP status used by the schedule router
INVALID, UNAVAILABLE, DOUBLE_BOOKED, CONFLICT = "invalid", "unavailable", "double_booked", "conflict"


@dataclass
class AssignmentResult:
    assignment: Optional[ScheduleAssignment] = None
    error: Optional[str] = None
    rejection: Optional[str] = None
    conflicting: list = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.assignment is not None


def _get_vehicle(db: Session, vehicle_id: str) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise NotFoundError("Vehicle", vehicle_id)
    return vehicle


def _get_depot(db: Session, depot_id: str) -> Depot:
    depot = db.query(Depot).filter(Depot.id == depot_id).first()
    if not depot:
        raise NotFoundError("Depot", depot_id)
    return depot


def list_charging_stalls(db: Session, depot_id: str, status: Optional[StallStatus] = None) -> list[Stall]:
    """Charging stalls at a depot, most powerful first."""
    q = db.query(Stall).filter(Stall.depot_id == depot_id, Stall.stall_type.in_(CHARGE_STALL_TYPES))
    if status is not None:
        q = q.filter(Stall.status == status)
    stalls = q.order_by(Stall.stall_number.asc()).all()
    return sorted(stalls, key=lambda s: s.charger_power_kw or 0, reverse=True)


def charging_queue(db: Session, depot_id: str) -> list[Vehicle]:
    """Idle vehicles at the depot, lowest state of charge first."""
    return (
        db.query(Vehicle)
        .filter(Vehicle.depot_id == depot_id, Vehicle.status == VehicleStatus.IDLE)
        .order_by(Vehicle.current_soc_percent.asc())
        .all()
    )


def _overlapping(db: Session, stall_id: str, start: datetime, end: datetime) -> list[ScheduleAssignment]:
    return (
        db.query(ScheduleAssignment)
        .filter(
            ScheduleAssignment.stall_id == stall_id,
            ScheduleAssignment.status.notin_(CLOSED_ASSIGNMENT_STATUSES),
            ScheduleAssignment.start_time < end,
            ScheduleAssignment.end_time > start,
        )
        .all()
    )


def _book(db: Session, store: StallStore, vehicle: Vehicle, stall: Stall, start: datetime, end: datetime,
          assignment_type: str, stall_status: StallStatus, vehicle_status: VehicleStatus) -> AssignmentResult:
    """Claim the stall, then record the assignment. The stall is released again if recording fails."""
    won = store.try_transition(
        stall.id, StallStatus.AVAILABLE, stall_status,
        current_vehicle_id=vehicle.id,
        session_started_at=store.now(),
        estimated_completion_at=end,
    )
    if not won:
        return AssignmentResult(error="Conflict: stall was taken by another request", rejection=CONFLICT)

    try:
        assignment = ScheduleAssignment(
            vehicle_id=vehicle.id,
            stall_id=stall.id,
            start_time=start,
            end_time=end,
            assignment_type=assignment_type,
            status="scheduled",
            created_at=store.now(),
        )
        db.add(assignment)
        vehicle.status = vehicle_status
        db.commit()
        db.refresh(assignment)
    except SQLAlchemyError:
        db.rollback()
        store.release(stall.id)
        logger.error(f"Assignment insert failed — stall {stall.id} released", exc_info=True)
        raise

    logger.info(f"📅 {assignment_type} assignment {assignment.id}: vehicle={vehicle.id} stall={stall.id}")
    return AssignmentResult(assignment=assignment)


def schedule_vehicle(db: Session, body: ScheduleVehicleRequest,
                     now: Callable[[], datetime] = datetime.utcnow) -> AssignmentResult:
    vehicle = _get_vehicle(db, body.vehicle_id)
    store = StallStore(db, now)
    stall = store.get(body.stall_id)
    if not stall or stall.stall_type not in CHARGE_STALL_TYPES:
        raise NotFoundError("Stall", body.stall_id)

    if body.end_time <= body.start_time:
        return AssignmentResult(error="end_time must be after start_time", rejection=INVALID)
    if stall.status != StallStatus.AVAILABLE:
        return AssignmentResult(error="Stall is not available", rejection=UNAVAILABLE)

    conflicts = _overlapping(db, stall.id, body.start_time, body.end_time)
    if conflicts:
        return AssignmentResult(
            error="Double-booking detected: stall is already reserved during this time",
            rejection=DOUBLE_BOOKED,
            conflicting=conflicts,
        )

    return _book(db, store, vehicle, stall, body.start_time, body.end_time,
                 "charging", StallStatus.RESERVED, VehicleStatus.CHARGING)


def assign_detailing(db: Session, body: AssignDetailingRequest,
                     now: Callable[[], datetime] = datetime.utcnow) -> AssignmentResult:
    window = body.time_window
    if window.start is None or window.end is None:
        return AssignmentResult(error="time_window must include start and end", rejection=INVALID)

    vehicle = _get_vehicle(db, body.vehicle_id)
    store = StallStore(db, now)
    bay = store.get(body.bay_id)
    if not bay or bay.stall_type != StallType.CLEAN_DETAIL:
        raise NotFoundError("Bay", body.bay_id)

    if window.end <= window.start:
        return AssignmentResult(error="time_window end must be after start", rejection=INVALID)
    if bay.status != StallStatus.AVAILABLE:
        return AssignmentResult(error="Bay is not available", rejection=UNAVAILABLE)

    return _book(db, store, vehicle, bay, window.start, window.end,
                 "detailing", StallStatus.OCCUPIED, VehicleStatus.DETAILING)


def optimize_charging_plan(db: Session, body: OptimizePlanRequest,
                           now: Callable[[], datetime] = datetime.utcnow) -> ChargingPlanOut:
    """
    Greedy plan: the lowest-SOC vehicle gets the most powerful free charger, and so on.
    Charge time targets 80% SOC, capped at the horizon. Starts are staggered by 10 minutes.
    The plan is advisory and nothing is reserved.
    """
    _get_depot(db, body.depot_id)
    vehicles = [v for v in charging_queue(db, body.depot_id) if v.current_soc_percent < TARGET_SOC]
    stalls = [s for s in list_charging_stalls(db, body.depot_id, StallStatus.AVAILABLE)
              if (s.charger_power_kw or 0) > 0]

    created = now()
    assignments = []
    for i, (vehicle, stall) in enumerate(zip(vehicles, stalls)):
        minutes = min(
            ((TARGET_SOC - vehicle.current_soc_percent) / 100) * vehicle.battery_capacity_kwh
            / (stall.charger_power_kw / 60),
            body.horizon_minutes,
        )
        start = created + i * PLAN_STAGGER
        assignments.append(PlannedAssignment(
            vehicle_id=vehicle.id,
            stall_id=stall.id,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
        ))

    total_minutes = sum((a.end_time - a.start_time).total_seconds() / 60 for a in assignments)
    utilization = (len(assignments) / len(stalls) * 100) if stalls else 0.0
    logger.info(f"🔋 Charging plan for depot {body.depot_id}: {len(assignments)} assignment(s)")

    return ChargingPlanOut(
        depot_id=body.depot_id,
        objective=body.objective,
        assignments=assignments,
        metrics=PlanMetrics(
            total_charging_time=round(total_minutes, 1),
            utilization_rate=round(utilization, 1),
        ),
        created_at=created,
    )


def utilization_report(db: Session, depot_id: str, start: datetime, end: datetime) -> UtilizationReportOut:
    _get_depot(db, depot_id)
    vehicles = db.query(Vehicle).filter(Vehicle.depot_id == depot_id).all()
    stalls = db.query(Stall).filter(Stall.depot_id == depot_id).all()
    chargers = [s for s in stalls if s.stall_type in CHARGE_STALL_TYPES]
    bays = [s for s in stalls if s.stall_type == StallType.CLEAN_DETAIL]

    stall_ids = [s.id for s in stalls]
    relevant = []
    if stall_ids:
        relevant = (
            db.query(ScheduleAssignment)
            .filter(
                ScheduleAssignment.stall_id.in_(stall_ids),
                ScheduleAssignment.start_time < end,
                ScheduleAssignment.end_time > start,
                ScheduleAssignment.status != "cancelled",
            )
            .all()
        )

    charging = sum(1 for a in relevant if a.assignment_type == "charging")
    detailing = sum(1 for a in relevant if a.assignment_type == "detailing")
    vehicle_util = len(relevant) / len(vehicles) * 100 if vehicles else 0.0
    stall_util = charging / len(chargers) * 100 if chargers else 0.0
    bay_util = detailing / len(bays) * 100 if bays else 0.0
    avg_soc = sum(v.current_soc_percent for v in vehicles) / len(vehicles) if vehicles else 0.0

    recommendations = []
    if stall_util < 70:
        recommendations.append("Consider promoting charging services to increase stall utilization")
    if vehicle_util > 90:
        recommendations.append("High demand detected - consider expanding fleet capacity")
    if bay_util < 50:
        recommendations.append("Detailing bays are underutilized - optimize scheduling or repurpose")

    return UtilizationReportOut(
        depot_id=depot_id,
        start_time=start,
        end_time=end,
        vehicle_utilization=round(vehicle_util, 1),
        stall_utilization=round(stall_util, 1),
        bay_utilization=round(bay_util, 1),
        peak_demand_hour=_busiest_hour(relevant, start, end),
        average_soc=round(avg_soc, 1),
        recommendations=recommendations,
    )


def _busiest_hour(assignments, start: datetime, end: datetime) -> datetime:
    """Start of the hour inside the window overlapped by the most assignments (earliest on ties)."""
    best, best_count = start, -1
    slot = start
    while slot < end:
        slot_end = slot + timedelta(hours=1)
        count = sum(1 for a in assignments if a.start_time < slot_end and a.end_time > slot)
        if count > best_count:
            best, best_count = slot, count
        slot = slot_end
    return best
