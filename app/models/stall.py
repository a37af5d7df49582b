# app/models/stall.py
"""
Depot stalls table — one row per physical slot (charger, detail bay, service bay, staging spot).
Rows are never deleted, only status-cycled:
  available → reserved → occupied → available, with maintenance as a side loop.
All status changes go through StallStore so they can be guarded on the current status.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float, UniqueConstraint
from app.database import Base
from app.models.enums import StallStatus, StallType, enum_column


class Stall(Base):
    __tablename__ = "depot_stalls"
    __table_args__ = (
        UniqueConstraint("depot_id", "stall_type", "stall_number", name="uq_stall_natural_key"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    depot_id = Column(String(36), nullable=False, index=True)
    stall_number = Column(Integer, nullable=False)          # 1-based, low = close to entrance
    stall_type = Column(enum_column(StallType), nullable=False, index=True)
    status = Column(enum_column(StallStatus), nullable=False, default=StallStatus.AVAILABLE, index=True)
    charger_power_kw = Column(Float)                        # charge stalls only
    current_vehicle_id = Column(String(36))
    current_job_id = Column(String(36))
    session_started_at = Column(DateTime)
    estimated_completion_at = Column(DateTime)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_fast_charger(self) -> bool:
        return (self.charger_power_kw or 0) >= 150

    def __repr__(self):
        return f"<Stall #{self.stall_number} {self.stall_type} status={self.status}>"
