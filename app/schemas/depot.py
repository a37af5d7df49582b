# app/schemas/depot.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class DepotCreate(BaseModel):
    name: str
    location_address: Optional[str] = None
    seed_standard_layout: bool = True   # 61 stalls: chargers, detail bays, service bay, staging


class DepotOut(BaseModel):
    id: str
    name: str
    location_address: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
