# app/schemas/stall.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional
from app.models.enums import StallStatus, StallType


class StallOut(BaseModel):
    id: str
    depot_id: str
    stall_number: int
    stall_type: StallType
    status: StallStatus
    charger_power_kw: Optional[float]
    current_vehicle_id: Optional[str]
    current_job_id: Optional[str]
    session_started_at: Optional[datetime]
    estimated_completion_at: Optional[datetime]

    class Config:
        from_attributes = True


class AllocationRequest(BaseModel):
    vehicle_id: str
    stall_type: StallType
    depot_id: str
    urgency: int = Field(50, ge=0, le=100)
    next_stall_type: Optional[StallType] = None   # next service in the visit, for sequential scoring
    is_member: bool = False


class AllocationBody(BaseModel):
    """Allocation request as posted to /depots/{depot_id}/allocate."""
    vehicle_id: str
    stall_type: StallType
    urgency: int = Field(50, ge=0, le=100)
    next_stall_type: Optional[StallType] = None
    is_member: bool = False


class AllocationResult(BaseModel):
    success: bool
    stall_id: Optional[str] = None
    stall_number: Optional[int] = None
    reason: Optional[str] = None
    waitlist_position: Optional[int] = None


class TransitionRequest(BaseModel):
    vehicle_id: str
    from_stall_id: str
    to_stall_type: StallType
    depot_id: str


class TransitionBody(BaseModel):
    vehicle_id: str
    from_stall_id: str
    to_stall_type: StallType


class TransitionResult(BaseModel):
    success: bool
    new_stall_id: Optional[str] = None
    new_stall_number: Optional[int] = None
    queued_for_wait: bool = False
    estimated_wait_seconds: int = 0   # flat default when queued, not a computed ETA


class ThroughputMetrics(BaseModel):
    stall_type: StallType
    total: int
    occupied: int
    available: int
    maintenance: int
    utilization_pct: int
    avg_dwell_minutes: int
    queue_depth: int
    status: Literal["optimal", "busy", "critical", "underutilized"]


class MaintenanceUpdate(BaseModel):
    offline: bool
