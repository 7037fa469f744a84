from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.datetime_utils import now_local_naive
from app.core.processing_steps import get_step_config
from app.db.session import SessionLocal
from app.models.assignment import RecAssignment
from app.models.processing_step import RecProcessingStep
from app.services.collaborators import NotificationSink, default_notification_sink, notify_quietly
from app.services.processing import list_overdue_steps, list_submission_followups

logger = logging.getLogger("sp.jobs")


def _processing_link(assignment_id: int) -> str:
    base = (settings.public_app_origin or "").rstrip("/")
    return f"{base}/processing/{assignment_id}"


async def _recruiter_for(session: AsyncSession, step: RecProcessingStep) -> str | None:
    assignment = await session.get(RecAssignment, step.assignment_id)
    return assignment.recruiter_person_id if assignment else None


async def run_overdue_step_sweep(
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    notifier: NotificationSink | None = None,
    now: datetime | None = None,
) -> int:
    """Remind recruiters about in-progress steps past their due date. Returns reminders sent."""
    factory = session_factory or SessionLocal
    sink = notifier or default_notification_sink
    now = now or now_local_naive()
    sent = 0
    async with factory() as session:
        for step in await list_overdue_steps(session, now=now):
            config = get_step_config(step.step_key)
            label = config.label if config else step.step_key
            overdue_days = (now - step.due_date).days if step.due_date else 0
            delivered = await notify_quietly(
                sink,
                await _recruiter_for(session, step),
                title=f"{label} overdue",
                body=f"{label} was due on {step.due_date:%d %b %Y} ({overdue_days} day(s) overdue)",
                link=_processing_link(step.assignment_id),
                metadata={"assignment_id": step.assignment_id, "step_key": step.step_key, "kind": "overdue"},
            )
            sent += int(delivered)
    logger.info("overdue_step_sweep_completed", extra={"reminders_sent": sent})
    return sent


async def run_submission_followups(
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    notifier: NotificationSink | None = None,
    now: datetime | None = None,
) -> int:
    """Follow up on submitted attestations/visas/dataflows still open after the configured number of days."""
    factory = session_factory or SessionLocal
    sink = notifier or default_notification_sink
    now = now or now_local_naive()
    sent = 0
    async with factory() as session:
        steps = await list_submission_followups(session, now=now, followup_days=settings.submission_followup_days)
        for step in steps:
            config = get_step_config(step.step_key)
            label = config.label if config else step.step_key
            delivered = await notify_quietly(
                sink,
                await _recruiter_for(session, step),
                title=f"{label} follow-up",
                body=f"{label} was submitted on {step.submitted_at:%d %b %Y} and is still open",
                link=_processing_link(step.assignment_id),
                metadata={"assignment_id": step.assignment_id, "step_key": step.step_key, "kind": "submission_followup"},
            )
            sent += int(delivered)
    logger.info("submission_followups_completed", extra={"reminders_sent": sent})
    return sent
