# app/schemas/assignment.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class AssignmentOut(BaseModel):
    id: str
    vehicle_id: str
    stall_id: str
    start_time: datetime
    end_time: datetime
    assignment_type: str
    status: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ScheduleVehicleRequest(BaseModel):
    vehicle_id: str
    stall_id: str
    start_time: datetime
    end_time: datetime


class TimeWindow(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class AssignDetailingRequest(BaseModel):
    vehicle_id: str
    bay_id: str
    time_window: TimeWindow


class OptimizePlanRequest(BaseModel):
    depot_id: str
    horizon_minutes: int = 120
    objective: str = "maximize_utilization"


class PlannedAssignment(BaseModel):
    vehicle_id: str
    stall_id: str
    start_time: datetime
    end_time: datetime
    assignment_type: str = "charging"
    status: str = "scheduled"


class PlanMetrics(BaseModel):
    total_charging_time: float
    utilization_rate: float
    conflicts_resolved: int = 0


class ChargingPlanOut(BaseModel):
    depot_id: str
    objective: str
    assignments: list[PlannedAssignment]
    metrics: PlanMetrics
    created_at: datetime


class UtilizationReportOut(BaseModel):
    depot_id: str
    start_time: datetime
    end_time: datetime
    vehicle_utilization: float
    stall_utilization: float
    bay_utilization: float
    peak_demand_hour: datetime
    average_soc: float
    recommendations: list[str]
