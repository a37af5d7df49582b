# app/services/stall_store.py
"""
StallStore: every stall status change in the system goes through here.

Concurrency is handled with optimistic locking at the database:
  UPDATE depot_stalls SET ... WHERE id = :id AND status = :expected
One row affected means this caller won the stall; zero rows means another caller
got there first. A lost race is a normal outcome (returns False), never an error.
Store failures (SQLAlchemyError) roll the session back and propagate.
"""

from datetime import datetime
from typing import Callable, Iterable, Optional
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.models.enums import StallStatus, StallType
from app.models.stall import Stall
from app.utils.logger import get_logger

logger = get_logger(__name__)

_CLEARED_SESSION = {
    "current_vehicle_id": None,
    "current_job_id": None,
    "session_started_at": None,
    "estimated_completion_at": None,
}


class StallStore:
    def __init__(self, db: Session, now: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.now = now

    # ── Reads ────────────────────────────────────────────────────────────
    def get(self, stall_id: str) -> Optional[Stall]:
        return self.db.query(Stall).filter(Stall.id == stall_id).first()

    def fetch_depot_stalls(self, depot_id: str, stall_types: Optional[Iterable[StallType]] = None) -> list[Stall]:
        q = self.db.query(Stall).filter(Stall.depot_id == depot_id)
        if stall_types is not None:
            q = q.filter(Stall.stall_type.in_(list(stall_types)))
        return q.order_by(Stall.stall_number.asc()).all()

    def fetch_available(self, depot_id: str, stall_types: Iterable[StallType], limit: int) -> list[Stall]:
        return (
            self.db.query(Stall)
            .filter(
                Stall.depot_id == depot_id,
                Stall.stall_type.in_(list(stall_types)),
                Stall.status == StallStatus.AVAILABLE,
            )
            .order_by(Stall.stall_number.asc())
            .limit(limit)
            .all()
        )

    # ── Conditional writes ───────────────────────────────────────────────
    def try_transition(self, stall_id: str, expected: StallStatus, new: StallStatus, **fields) -> bool:
        """Compare-and-swap on status. Returns True only if this call changed the row."""
        values = {"status": new, "updated_at": self.now(), **fields}
        won = self._execute(
            update(Stall)
            .where(Stall.id == stall_id, Stall.status == expected)
            .values(**values)
        )
        if not won:
            logger.info(f"[CAS] stall {stall_id}: lost race {expected.value} → {new.value}")
        return won

    def try_reserve(self, stall_id: str, vehicle_id: str, job_id: Optional[str] = None) -> bool:
        return self.try_transition(
            stall_id, StallStatus.AVAILABLE, StallStatus.RESERVED,
            current_vehicle_id=vehicle_id,
            current_job_id=job_id,
            session_started_at=self.now(),
        )

    def release(self, stall_id: str, holder_job_id: Optional[str] = None) -> bool:
        """
        Return a stall to `available` and clear its occupant.
        Unconditional on status, so releasing an already-available stall is a no-op that succeeds.
        With holder_job_id the release only applies while that job still holds the stall.
        """
        stmt = update(Stall).where(Stall.id == stall_id)
        if holder_job_id is not None:
            stmt = stmt.where(Stall.current_job_id == holder_job_id)
        return self._execute(stmt.values(status=StallStatus.AVAILABLE, updated_at=self.now(), **_CLEARED_SESSION))

    def mark_occupied(self, stall_id: str, holder_job_id: str, estimated_completion_at: Optional[datetime] = None) -> bool:
        return self._execute(
            update(Stall)
            .where(Stall.id == stall_id, Stall.current_job_id == holder_job_id)
            .values(
                status=StallStatus.OCCUPIED,
                estimated_completion_at=estimated_completion_at,
                updated_at=self.now(),
            )
        )

    def force_maintenance(self, stall_id: str) -> bool:
        """Take a stall offline, pre-empting whoever is using it."""
        return self._execute(
            update(Stall)
            .where(Stall.id == stall_id)
            .values(status=StallStatus.MAINTENANCE, updated_at=self.now(), **_CLEARED_SESSION)
        )

    def restore_from_maintenance(self, stall_id: str) -> bool:
        """Only a stall currently in maintenance comes back; a reserved or occupied one keeps its occupant."""
        return self.try_transition(stall_id, StallStatus.MAINTENANCE, StallStatus.AVAILABLE)

    def _execute(self, stmt) -> bool:
        try:
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Stall store update failed", exc_info=True)
            raise
        return result.rowcount == 1
