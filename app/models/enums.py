# app/models/enums.py
"""
Closed status/type vocabularies shared by the ORM models, schemas and services.
Persisted by value (e.g. "charge_fast"), never by member name.
"""

import enum

from sqlalchemy import Enum as SAEnum


class StallType(str, enum.Enum):
    CHARGE_STANDARD = "charge_standard"
    CHARGE_FAST = "charge_fast"
    CLEAN_DETAIL = "clean_detail"
    SERVICE_BAY = "service_bay"
    STAGING = "staging"


class StallStatus(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class JobType(str, enum.Enum):
    CHARGE = "CHARGE"
    DETAILING = "DETAILING"
    MAINTENANCE = "MAINTENANCE"
    DOWNTIME_PARK = "DOWNTIME_PARK"


class JobState(str, enum.Enum):
    PENDING = "PENDING"
    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class VehicleStatus(str, enum.Enum):
    IDLE = "idle"
    ENROUTE_DEPOT = "enroute_depot"
    IN_SERVICE = "in_service"
    CHARGING = "charging"
    DETAILING = "detailing"
    STAGED = "staged"
    OFFLINE = "offline"


class ServiceType(str, enum.Enum):
    CHARGE = "charge"
    DETAIL_CLEAN = "detail_clean"
    TIRE_ROTATION = "tire_rotation"
    BATTERY_HEALTH_CHECK = "battery_health_check"
    FULL_SERVICE = "full_service"


class PipelineState(str, enum.Enum):
    ARRIVED = "ARRIVED"
    QUEUED = "QUEUED"
    IN_SERVICE = "IN_SERVICE"
    TRANSITIONING = "TRANSITIONING"
    STAGING = "STAGING"
    DEPLOYED = "DEPLOYED"


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    BLOCKED = "blocked"


CHARGE_STALL_TYPES = (StallType.CHARGE_STANDARD, StallType.CHARGE_FAST)

# Stall types able to host each job type
JOB_STALL_TYPES = {
    JobType.CHARGE: CHARGE_STALL_TYPES,
    JobType.DETAILING: (StallType.CLEAN_DETAIL,),
    JobType.DOWNTIME_PARK: (StallType.CLEAN_DETAIL,),
    JobType.MAINTENANCE: (StallType.SERVICE_BAY,),
}

TERMINAL_JOB_STATES = (JobState.COMPLETED, JobState.CANCELLED)
OCCUPIED_STATUSES = (StallStatus.RESERVED, StallStatus.OCCUPIED)


def enum_column(enum_cls):
    """String-backed enum column type storing member values."""
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
    )
