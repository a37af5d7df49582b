# app/services/scheduler_loop.py
"""
In-process tick driver — runs the job transition sweep on a fixed interval.

Off by default (SCHEDULER_AUTO_TICK); deployments normally call POST /scheduler/tick
from an external timer instead. Each tick uses a fresh DB session, and a failed
tick is logged and retried on the next interval rather than stopping the loop.
"""

import asyncio
from typing import Optional
from app.database import SessionLocal
from app.services.job_scheduler import JobScheduler
from app.utils.logger import get_logger

logger = get_logger(__name__)


def run_tick(session_factory=SessionLocal, orchestrator=None):
    """One sweep: job transitions, plus demo pipeline progress when an orchestrator is given."""
    db = session_factory()
    try:
        sweep = JobScheduler(db).process_transitions()
    finally:
        db.close()

    if orchestrator is not None:
        orchestrator.simulate_progress()

    if sweep.activated or sweep.completed:
        logger.info(f"⏱  Tick: {len(sweep.activated)} activated, {len(sweep.completed)} completed")
    return sweep


async def scheduler_loop(interval_seconds: float, orchestrator=None, session_factory=SessionLocal,
                         max_ticks: Optional[int] = None):
    """Loop until cancelled (or for max_ticks iterations)."""
    logger.info(f"🚀 Scheduler tick loop started — every {interval_seconds}s")
    ticks = 0
    while max_ticks is None or ticks < max_ticks:
        try:
            run_tick(session_factory, orchestrator)
        except Exception as e:
            logger.error(f"Scheduler tick failed: {e}", exc_info=True)
        ticks += 1
        await asyncio.sleep(interval_seconds)
