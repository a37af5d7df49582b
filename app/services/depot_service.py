# app/services/depot_service.py
"""
Depot and fleet registration.

A new depot can be seeded with the standard 61-stall layout; the stall numbering
matches the section ranges the allocation scorer uses.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.models.depot import Depot
from app.models.enums import StallType, VehicleStatus
from app.models.stall import Stall
from app.models.vehicle import Vehicle
from app.schemas.depot import DepotCreate
from app.schemas.vehicle import VehicleCreate
from app.services.errors import NotFoundError
from app.services.resource_manager import SECTION_RANGES
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Power rating per charger type in the standard layout
LAYOUT_CHARGER_KW = {
    StallType.CHARGE_STANDARD: 50.0,
    StallType.CHARGE_FAST: 250.0,
}


def standard_layout() -> list[tuple[int, StallType, Optional[float]]]:
    """(stall_number, stall_type, charger_power_kw) for every stall, in number order."""
    layout = []
    for stall_type, (low, high) in SECTION_RANGES.items():
        for number in range(low, high + 1):
            layout.append((number, stall_type, LAYOUT_CHARGER_KW.get(stall_type)))
    return sorted(layout, key=lambda row: row[0])


def create_depot(db: Session, body: DepotCreate) -> Depot:
    depot = Depot(name=body.name, location_address=body.location_address, created_at=datetime.utcnow())
    db.add(depot)
    db.flush()

    if body.seed_standard_layout:
        for number, stall_type, power in standard_layout():
            db.add(Stall(depot_id=depot.id, stall_number=number, stall_type=stall_type,
                         charger_power_kw=power))
    db.commit()
    db.refresh(depot)
    logger.info(f"🏭 Depot {depot.id} '{depot.name}' created"
                f"{' with standard layout' if body.seed_standard_layout else ''}")
    return depot


def get_depot(db: Session, depot_id: str) -> Depot:
    depot = db.query(Depot).filter(Depot.id == depot_id).first()
    if not depot:
        raise NotFoundError("Depot", depot_id)
    return depot


def list_depots(db: Session) -> list[Depot]:
    return db.query(Depot).order_by(Depot.created_at.asc()).all()


def register_vehicle(db: Session, body: VehicleCreate) -> Vehicle:
    if body.depot_id:
        get_depot(db, body.depot_id)
    vehicle = Vehicle(**body.model_dump(), status=VehicleStatus.IDLE)
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    logger.info(f"🚙 Vehicle {vehicle.id} ({vehicle.make_model or 'unknown'}) registered")
    return vehicle


def get_vehicle(db: Session, vehicle_id: str) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise NotFoundError("Vehicle", vehicle_id)
    return vehicle


def list_vehicles(db: Session, depot_id: Optional[str] = None,
                  status: Optional[VehicleStatus] = None) -> list[Vehicle]:
    q = db.query(Vehicle)
    if depot_id:
        q = q.filter(Vehicle.depot_id == depot_id)
    if status is not None:
        q = q.filter(Vehicle.status == status)
    return q.all()
