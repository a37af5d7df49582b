# app/models/job.py
"""
Jobs table — one unit of work binding a vehicle to a stall for a bounded duration.
Lifecycle: PENDING → SCHEDULED → ACTIVE → COMPLETED, any non-terminal state → CANCELLED.
resource_id is set only while SCHEDULED or ACTIVE (kept afterwards for audit).
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON
from app.database import Base
from app.models.enums import JobState, JobType, enum_column


class Job(Base):
    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vehicle_id = Column(String(36), nullable=False, index=True)
    depot_id = Column(String(36), nullable=False, index=True)
    job_type = Column(enum_column(JobType), nullable=False)
    state = Column(enum_column(JobState), nullable=False, default=JobState.PENDING, index=True)
    resource_id = Column(String(36))                 # FK to depot_stalls.id
    requested_start_at = Column(DateTime)
    scheduled_start_at = Column(DateTime, index=True)
    started_at = Column(DateTime)
    eta_seconds = Column(Integer)
    completed_at = Column(DateTime)
    metadata_json = Column("metadata", JSON, default=dict)
    idempotency_key = Column(String(255), unique=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Job {self.id} {self.job_type} state={self.state}>"
