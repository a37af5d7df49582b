# app/schemas/pipeline.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from app.models.enums import PipelineState, ServiceType, StallType, StepStatus


class PipelineStepOut(BaseModel):
    id: str
    service_type: ServiceType
    stall_type: StallType
    assigned_stall_id: Optional[str]
    assigned_stall_number: Optional[int]
    duration_minutes: int
    estimated_start_time: datetime
    estimated_end_time: datetime
    actual_start_time: Optional[datetime]
    actual_end_time: Optional[datetime]
    status: StepStatus
    progress: float

    class Config:
        from_attributes = True


class ServicePipelineOut(BaseModel):
    vehicle_id: str
    vehicle_make_model: str
    state: PipelineState
    steps: list[PipelineStepOut]
    current_step_index: int
    arrival_time: datetime
    estimated_ready_time: datetime
    total_duration_minutes: int

    class Config:
        from_attributes = True


class TransitionEventOut(BaseModel):
    timestamp: datetime
    vehicle_id: str
    from_state: PipelineState
    to_state: PipelineState
    label: str
    stall_id: Optional[str]

    class Config:
        from_attributes = True


class ArrivalRequest(BaseModel):
    vehicle_id: str
    depot_id: Optional[str] = None
    threshold_durations: Optional[dict[ServiceType, int]] = None   # minutes per service


class LifecycleCounts(BaseModel):
    total: int
    queued: int
    in_service: int
    staged: int
    deployed: int


class DemandWindow(BaseModel):
    label: str
    start_hour: int
    end_hour: int
    vehicles_needed: int
    vehicles_available: int
    deficit: int


class SurgeUpdate(BaseModel):
    multiplier: float = Field(..., gt=0)


class HourlyConsumption(BaseModel):
    hour: int
    kwh: float
    rate: float


class EnergyArbitrageOut(BaseModel):
    total_kwh_consumed: int
    avg_cost_per_kwh: float
    savings_vs_peak_dollars: float
    savings_percent: int
    projected_monthly_savings: float
    hourly_consumption: list[HourlyConsumption]
    current_rate_tier: str
    minutes_until_rate_change: int
