from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.jobs.tasks import run_overdue_step_sweep, run_submission_followups


def start_scheduler() -> AsyncIOScheduler:
    """Register the processing reminder sweeps and start them on the running event loop."""
    scheduler = AsyncIOScheduler(timezone=settings.timezone)
    jobs = (
        ("overdue_step_sweep", run_overdue_step_sweep, IntervalTrigger(minutes=settings.sweep_interval_minutes)),
        ("submission_followups", run_submission_followups, IntervalTrigger(hours=6)),
    )
    for job_id, func, trigger in jobs:
        # A slow sweep is skipped rather than run twice at once.
        scheduler.add_job(func, trigger, id=job_id, replace_existing=True, coalesce=True, max_instances=1)
    scheduler.start()
    return scheduler
