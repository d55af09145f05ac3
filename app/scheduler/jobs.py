"""
app/scheduler/jobs.py

APScheduler-based background jobs.

Schedule
--------
  daily_target_refresh: every day at ``TARGET_REFRESH_HOUR_UTC`` (default 06:00)

Every active organization is visited; active action targets have their
current gap, progress, and status recomputed from the latest weekly data.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import SchedulerSettings, get_scheduler_settings
from app.services.target_service import get_action_target_service
from db.session import session_scope

logger = logging.getLogger(__name__)

TARGET_REFRESH_JOB_ID = "daily_target_refresh"


# ---------------------------------------------------------------------------
# Job: Daily action target refresh
# ---------------------------------------------------------------------------


def run_daily_target_refresh() -> None:
    """
    Recompute progress for every active target of every active organization.
    """
    logger.info("Scheduler: daily_target_refresh starting")

    try:
        with session_scope() as db:
            refreshed = get_action_target_service().refresh_all_organizations(db=db)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: daily_target_refresh failed: %s", exc)
        return

    logger.info(
        "Scheduler: daily_target_refresh complete organizations=%d targets=%d",
        len(refreshed),
        sum(refreshed.values()),
    )


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(settings: SchedulerSettings | None = None) -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    settings = settings or get_scheduler_settings()
    scheduler = BackgroundScheduler(timezone=settings.timezone)

    scheduler.add_job(
        run_daily_target_refresh,
        trigger="cron",
        hour=settings.target_refresh_hour,
        minute=0,
        id=TARGET_REFRESH_JOB_ID,
        name="Daily action target refresh",
        replace_existing=True,
        misfire_grace_time=3600,
    )

    return scheduler
