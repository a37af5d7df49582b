# app/schemas/vehicle.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from app.models.enums import ServiceType, VehicleStatus
from app.schemas.job import JobIntakeOut


class VehicleCreate(BaseModel):
    depot_id: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    battery_capacity_kwh: float = Field(75.0, gt=0)
    current_soc_percent: float = Field(100.0, ge=0, le=100)
    current_range_miles: float = 0.0
    odometer_miles: int = 0
    avg_daily_miles: float = 0.0
    last_detail_date: Optional[datetime] = None
    last_tire_rotation_date: Optional[datetime] = None
    last_battery_health_check: Optional[datetime] = None


class VehicleOut(BaseModel):
    id: str
    depot_id: Optional[str]
    make: Optional[str]
    model: Optional[str]
    battery_capacity_kwh: float
    current_soc_percent: float
    current_range_miles: float
    odometer_miles: int
    avg_daily_miles: float
    status: VehicleStatus
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ServiceNeedOut(BaseModel):
    service_type: ServiceType
    urgency: float
    reason: str

    class Config:
        from_attributes = True


class VehicleServiceNeeds(BaseModel):
    vehicle_id: str
    needs: list[ServiceNeedOut]
    charge_recommendation: str


class TelemetryUpdate(BaseModel):
    """Fields left out keep their stored value."""
    current_soc_percent: Optional[float] = Field(None, ge=0, le=100)
    current_range_miles: Optional[float] = Field(None, ge=0)
    odometer_miles: Optional[int] = Field(None, ge=0, le=10_000_000)
    ts: Optional[datetime] = None


class TelemetryResult(BaseModel):
    vehicle: VehicleOut
    job_triggered: Optional[JobIntakeOut] = None
