"""
backend/booking_backend/services/next_slot_refresher.py

Stored "next available slot" of each provider (providers.next_available_slot),
shown on provider listings without generating slots per request.

Recomputed:
- after a booking or blocked period changes (request background task)
- by the checker loop, for providers whose stored slot has passed, that
  were never computed, or whose last computation is older than STALE_AFTER

The slot is computed for the provider's shortest active service.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from ..config import settings
from ..database import get_session_factory
from .clock import provider_now
from .slots import CandidateSlot, SchedulingError, get_slot_policy, next_available_slot
from .slots.errors import NotFound
from .slots.repository import SqlScheduleRepository

logger = logging.getLogger(__name__)

STALE_AFTER = timedelta(hours=2)


def refresh_next_available_slot(
    provider_id: int,
    repo: SqlScheduleRepository | None = None,
    at: datetime | None = None,
) -> CandidateSlot | None:
    """
    Recompute and store the provider's next available slot (synchronous).

    `at` is the instant to compute for (default: now).

    Raises:
        NotFound: provider missing or inactive.
        DataUnavailable: no member's availability could be loaded;
                         the stored value is left untouched.
    """
    repo = repo or SqlScheduleRepository(get_session_factory())
    provider = repo.get_provider(provider_id)
    if not provider or not provider.is_active:
        raise NotFound(f"provider {provider_id} not found or inactive")

    now = provider_now(provider, at)
    duration = repo.shortest_service_minutes(provider)

    slot = None
    if duration is not None:
        slot = asyncio.run(next_available_slot(
            repo.list_active_members(provider_id),
            duration,
            repo.policy_for_provider(provider, get_slot_policy()),
            source=repo,
            now=now,
            max_concurrency=settings.member_fetch_concurrency,
            fetch_timeout=settings.member_fetch_timeout_seconds,
        ))

    repo.save_next_available_slot(provider_id, slot.datetime if slot else None, checked_at=now)
    logger.info(
        f"Next available slot for provider {provider_id}: "
        f"{slot.datetime.isoformat() if slot else 'none'}"
    )
    return slot


def refresh_after_change(provider_id: int, repo: SqlScheduleRepository) -> None:
    """Background-task entry point: a failed refresh is logged, never raised."""
    try:
        refresh_next_available_slot(provider_id, repo)
    except SchedulingError as e:
        logger.warning(f"Next slot refresh failed for provider {provider_id}: {e}")


def needs_refresh(provider, now: datetime) -> bool:
    if not provider.next_slot_checked_at:
        return True
    checked_at = datetime.fromisoformat(provider.next_slot_checked_at)
    if now - checked_at >= STALE_AFTER:
        return True
    if provider.next_available_slot:
        return datetime.fromisoformat(provider.next_available_slot) < now
    return False


def refresh_stale_next_slots(at: datetime | None = None, force: bool = False) -> int:
    """Refresh every active provider that needs it (all of them with force). Returns the count."""
    repo = SqlScheduleRepository(get_session_factory())
    refreshed = 0
    for provider in repo.list_active_providers():
        if not force and not needs_refresh(provider, provider_now(provider, at)):
            continue
        try:
            refresh_next_available_slot(provider.id, repo, at)
        except SchedulingError as e:
            logger.warning(f"Next slot refresh failed for provider {provider.id}: {e}")
            continue
        refreshed += 1

    if refreshed:
        logger.info(f"Refreshed next available slot of {refreshed} provider(s)")
    return refreshed
