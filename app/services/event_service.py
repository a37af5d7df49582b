# app/services/event_service.py
"""
Shared scheduler event recording.
Used by job_scheduler for every job lifecycle change and by telemetry intake.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from app.models.scheduler_event import SchedulerEvent
from app.utils.logger import get_logger

logger = get_logger(__name__)


def record_event(db: Session, event_type: str, entity_id: str, payload: Optional[dict] = None,
                 entity_type: str = "JOB", now: Optional[datetime] = None):
    """Persist a scheduler event. Always commits immediately."""
    db.add(SchedulerEvent(entity_type=entity_type, entity_id=entity_id, event_type=event_type,
                          payload=payload or {}, created_at=now or datetime.utcnow()))
    db.commit()
    logger.info(f"[EVENT][{event_type}] {entity_type.lower()}={entity_id} {payload or ''}")


def list_events(db: Session, entity_id: Optional[str] = None, event_type: Optional[str] = None, limit: int = 50):
    q = db.query(SchedulerEvent)
    if entity_id:
        q = q.filter(SchedulerEvent.entity_id == entity_id)
    if event_type:
        q = q.filter(SchedulerEvent.event_type == event_type)
    return q.order_by(SchedulerEvent.created_at.desc(), SchedulerEvent.id.desc()).limit(limit).all()
