# app/models/scheduler_event.py
"""
Append-only scheduler event log.
Every job lifecycle change (JOB_CREATED, JOB_SCHEDULED, JOB_ACTIVE, JOB_COMPLETED,
JOB_CANCELLED) is recorded here for audit and replay.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from app.database import Base


class SchedulerEvent(Base):
    __tablename__ = "scheduler_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(50), nullable=False)        # JOB | STALL | VEHICLE
    entity_id = Column(String(36), index=True)
    event_type = Column(String(100), nullable=False, index=True)
    payload = Column(JSON)
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<SchedulerEvent {self.id} {self.event_type} entity={self.entity_id}>"
