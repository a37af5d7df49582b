# app/routers/depots.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.depot import DepotCreate, DepotOut
from app.services import depot_service

router = APIRouter()


@router.post("/depots", response_model=DepotOut, status_code=201, summary="Register a depot")
def create_depot(body: DepotCreate, db: Session = Depends(get_db)):
    """Optionally seeds the standard 61-stall layout."""
    return depot_service.create_depot(db, body)


@router.get("/depots", response_model=list[DepotOut])
def list_depots(db: Session = Depends(get_db)):
    return depot_service.list_depots(db)


@router.get("/depots/{depot_id}", response_model=DepotOut)
def get_depot(depot_id: str, db: Session = Depends(get_db)):
    return depot_service.get_depot(db, depot_id)
