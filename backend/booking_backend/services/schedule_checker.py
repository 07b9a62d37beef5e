"""
Scheduled availability checker.

Each pass:
- folds availability changes whose effective_from has passed into the
  members' live weekly schedules (each compared with its own provider's
  local time)
- refreshes stale "next available slot" values of providers (all of them
  when a schedule changed)

Runs as an asyncio task in backend lifespan.
Uses synchronous DB (via asyncio.to_thread).
"""

import asyncio
import logging
from datetime import datetime, timezone

from ..database import get_session_factory
from .next_slot_refresher import refresh_stale_next_slots
from .slots.repository import SqlScheduleRepository
from .slots.schedule_changes import ScheduleEditor

logger = logging.getLogger(__name__)

CHECK_INTERVAL = 60  # seconds between checks


async def schedule_checker_loop() -> None:
    """Periodic loop applying due availability changes."""
    logger.info("schedule_checker_loop started")

    try:
        while True:
            try:
                applied = await asyncio.to_thread(apply_due_changes)
                await asyncio.to_thread(refresh_stale_next_slots, None, applied > 0)
            except asyncio.CancelledError:
                logger.info("schedule_checker_loop cancelled")
                raise
            except Exception:
                logger.exception("schedule_checker_loop error")

            await asyncio.sleep(CHECK_INTERVAL)
    except asyncio.CancelledError:
        pass


def apply_due_changes(at: datetime | None = None) -> int:
    """
    Apply every change due at instant `at` (default: now). Synchronous.

    effective_from is provider-local, so each member's changes are compared
    with the wall clock of that member's provider. Returns the count.
    """
    at = at or datetime.now(timezone.utc)
    repo = SqlScheduleRepository(get_session_factory())
    return ScheduleEditor(repo).apply_due_changes(
        lambda member_id: repo.member_local_now(member_id, at)
    )
