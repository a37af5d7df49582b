# app/models/vehicle.py
"""
Fleet vehicles table.
Telemetry columns feed the threshold engine (service needs) and the charging queue;
status is updated by the job scheduler as jobs move through their lifecycle.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Float
from app.database import Base
from app.models.enums import VehicleStatus, enum_column


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    depot_id = Column(String(36), index=True)
    make = Column(String(100))
    model = Column(String(100))
    battery_capacity_kwh = Column(Float, default=75.0, nullable=False)
    current_soc_percent = Column(Float, default=100.0, nullable=False)
    current_range_miles = Column(Float, default=0.0, nullable=False)
    odometer_miles = Column(Integer, default=0, nullable=False)
    avg_daily_miles = Column(Float, default=0.0, nullable=False)
    last_detail_date = Column(DateTime)
    last_tire_rotation_date = Column(DateTime)
    last_battery_health_check = Column(DateTime)
    status = Column(enum_column(VehicleStatus), nullable=False, default=VehicleStatus.IDLE)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def make_model(self) -> str:
        return f"{self.make or ''} {self.model or ''}".strip()

    def __repr__(self):
        return f"<Vehicle {self.id} {self.make_model} soc={self.current_soc_percent}>"
