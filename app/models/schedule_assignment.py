# app/models/schedule_assignment.py
"""
Time-windowed stall assignments made through the manual scheduling routes
(/schedule-vehicle, /assign-detailing). Used for double-booking detection
and the utilization report.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime
from app.database import Base


class ScheduleAssignment(Base):
    __tablename__ = "schedule_assignments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    vehicle_id = Column(String(36), nullable=False, index=True)
    stall_id = Column(String(36), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    assignment_type = Column(String(20), nullable=False)   # charging | detailing
    status = Column(String(20), nullable=False, default="scheduled")  # scheduled | active | completed | cancelled
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<ScheduleAssignment {self.id} stall={self.stall_id} {self.status}>"
