# app/models/depot.py
"""
Depots table — one row per physical depot.
Stalls, vehicles and jobs all reference a depot by id.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime
from app.database import Base


class Depot(Base):
    __tablename__ = "depots"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    location_address = Column(String(300))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Depot {self.id} name={self.name}>"
