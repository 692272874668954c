"""Reclamation of expired renewal records, run periodically by the app scheduler.

A failed pass is logged and left for the next tick; it never propagates.
"""

import logging
import random
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gatekeeper.config import Settings, settings
from gatekeeper.core.errors import StoreUnavailableError
from gatekeeper.core.metrics import PURGE_RUNS, PURGED_RECORDS
from gatekeeper.db.session import async_session_maker
from gatekeeper.services.renewal_registry import RenewalRegistry

logger = logging.getLogger(__name__)

PURGE_JOB_ID = "purge_expired_renewals"


async def purge_expired_renewals(
    session_maker: async_sessionmaker[AsyncSession] = async_session_maker,
    conf: Settings = settings,
) -> int | None:
    """Delete expired renewal records. Returns the number deleted, or None when the pass failed."""
    try:
        async with session_maker() as session:
            deleted = await RenewalRegistry(session, conf).delete_expired()
            await session.commit()
    except StoreUnavailableError as e:
        PURGE_RUNS.labels(result="error").inc()
        logger.warning("Failed to purge expired renewal records: %s", e)
        return None
    except Exception as e:
        PURGE_RUNS.labels(result="error").inc()
        logger.exception("Failed to purge expired renewal records: %s", e)
        return None
    PURGE_RUNS.labels(result="ok").inc()
    PURGED_RECORDS.inc(deleted)
    logger.info("Purged %s expired renewal record(s)", deleted)
    return deleted


def schedule_purge(scheduler: AsyncIOScheduler, conf: Settings = settings) -> None:
    """Register the purge job: first run shortly after start-up, then every purge_interval_hours."""
    delay = random.uniform(0, conf.purge_jitter_seconds) if conf.purge_jitter_seconds > 0 else 0
    scheduler.add_job(
        purge_expired_renewals,
        trigger=IntervalTrigger(hours=conf.purge_interval_hours, jitter=conf.purge_jitter_seconds or None),
        id=PURGE_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc) + timedelta(seconds=delay),
    )
    logger.info("Renewal record purge scheduled every %s hours", conf.purge_interval_hours)
