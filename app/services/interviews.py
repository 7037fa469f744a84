from __future__ import annotations

from datetime import datetime, timedelta
from secrets import token_urlsafe
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.datetime_utils import month_bounds, now_local_naive, to_local_naive, week_bounds
from app.core.errors import InvalidRequest, NotFound, SlotConflict, TerminalState
from app.core.statuses import (
    INTERVIEW_HISTORY_UPDATED,
    INTERVIEW_OUTCOME_PENDING,
    InterviewMode,
    InterviewOutcome,
    SubStatus,
)
from app.db.session import transaction
from app.models.interview import RecInterview
from app.models.interview_status_history import RecInterviewStatusHistory
from app.models.project import RecProject
from app.schemas.bulk import BulkResult
from app.schemas.dashboard import InterviewDashboardOut
from app.schemas.interview import InterviewCreate, InterviewOutcomeBulkItem, InterviewOut
from app.schemas.user import ActorContext
from app.services.assignment_transitions import get_assignment, transition_sub_status
from app.services.audit_trail import record_interview_status
from app.services.bulk import run_each
from app.services.collaborators import (
    IdentityLookup,
    NotificationSink,
    default_notification_sink,
    notify_quietly,
    resolve_actor,
)
from app.services.observer import TransitionObserver


def _overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def _meeting_link() -> str:
    return f"{settings.meeting_base_url.rstrip('/')}/{token_urlsafe(24)}"


def _interview_link(interview_id: int) -> str:
    base = (settings.public_app_origin or "").rstrip("/")
    return f"{base}/interviews/{interview_id}"


def _by_actor(prefix: str, actor: ActorContext) -> str:
    who = actor.name or actor.person_id
    return f"{prefix} by {who}" if who else prefix


def _append_note(existing: str | None, addition: str | None) -> str | None:
    if not addition:
        return existing
    if not existing:
        return addition
    return f"{existing}\n{addition}"


async def get_interview(session: AsyncSession, interview_id: int) -> RecInterview:
    interview = await session.get(RecInterview, interview_id)
    if not interview:
        raise NotFound("Interview", interview_id)
    return interview


async def _find_overlap(
    session: AsyncSession,
    *,
    assignment_id: int | None,
    project_id: int | None,
    start: datetime,
    duration_minutes: int,
    exclude_interview_id: int | None = None,
) -> RecInterview | None:
    stmt = select(RecInterview).where(
        or_(RecInterview.outcome.is_(None), RecInterview.outcome != InterviewOutcome.CANCELLED.value)
    )
    if assignment_id is not None:
        stmt = stmt.where(RecInterview.assignment_id == assignment_id)
    else:
        stmt = stmt.where(RecInterview.assignment_id.is_(None), RecInterview.project_id == project_id)
    if exclude_interview_id is not None:
        stmt = stmt.where(RecInterview.interview_id != exclude_interview_id)

    end = start + timedelta(minutes=duration_minutes)
    for existing in (await session.execute(stmt.order_by(RecInterview.scheduled_time))).scalars().all():
        existing_end = existing.scheduled_time + timedelta(minutes=existing.duration_minutes)
        if _overlaps(start, end, existing.scheduled_time, existing_end):
            return existing
    return None


async def schedule(
    session: AsyncSession,
    *,
    assignment_id: int,
    scheduled_time: datetime,
    actor: ActorContext,
    duration_minutes: int | None = None,
    interview_type: str = "client",
    mode: InterviewMode | str = InterviewMode.VIDEO,
    meeting_link: str | None = None,
    notes: str | None = None,
    notifier: NotificationSink | None = None,
    observer: TransitionObserver | None = None,
    identity: IdentityLookup | None = None,
) -> RecInterview:
    """
    Schedule an interview for an assignment.

    Creating the interview, moving the assignment to `interview_scheduled` and writing
    the interview history row happen in one transaction. The recruiter is notified
    once that has been committed.
    """
    duration = duration_minutes or settings.default_interview_duration_minutes
    start = to_local_naive(scheduled_time)
    mode_value = InterviewMode(mode).value

    async with transaction(session):
        assignment = await get_assignment(session, assignment_id)
        conflict = await _find_overlap(
            session,
            assignment_id=assignment_id,
            project_id=None,
            start=start,
            duration_minutes=duration,
        )
        if conflict:
            raise SlotConflict(conflict.interview_id)

        actor = await resolve_actor(session, actor, identity)
        if not meeting_link and mode_value == InterviewMode.VIDEO.value:
            meeting_link = _meeting_link()
        interview = RecInterview(
            assignment_id=assignment_id,
            project_id=assignment.project_id,
            scheduled_time=start,
            duration_minutes=duration,
            interview_type=interview_type,
            mode=mode_value,
            meeting_link=meeting_link,
            notes=notes,
            outcome=None,
            scheduled_by_person_id=actor.person_id,
        )
        session.add(interview)
        await session.flush()

        await transition_sub_status(
            session,
            assignment_id=assignment_id,
            sub_status=SubStatus.INTERVIEW_SCHEDULED,
            actor=actor,
            reason=_by_actor("Interview scheduled", actor),
            observer=observer,
        )
        await record_interview_status(
            session,
            interview=interview,
            status=InterviewOutcome.SCHEDULED.value,
            actor=actor,
            reason=_by_actor("Client interview scheduled", actor),
        )

    await notify_quietly(
        notifier or default_notification_sink,
        assignment.recruiter_person_id,
        title="Interview scheduled",
        body=f"Interview scheduled for {start:%d %b %Y %H:%M} ({duration} min)",
        link=_interview_link(interview.interview_id),
        metadata={"assignment_id": assignment_id, "interview_id": interview.interview_id},
    )
    return interview


async def schedule_for_project(
    session: AsyncSession,
    *,
    project_id: int,
    scheduled_time: datetime,
    actor: ActorContext,
    duration_minutes: int | None = None,
    interview_type: str = "client",
    mode: InterviewMode | str = InterviewMode.VIDEO,
    meeting_link: str | None = None,
    notes: str | None = None,
    identity: IdentityLookup | None = None,
) -> RecInterview:
    """Interview tied to a project only; no assignment status changes."""
    duration = duration_minutes or settings.default_interview_duration_minutes
    start = to_local_naive(scheduled_time)
    mode_value = InterviewMode(mode).value

    async with transaction(session):
        if not await session.get(RecProject, project_id):
            raise NotFound("Project", project_id)
        conflict = await _find_overlap(
            session,
            assignment_id=None,
            project_id=project_id,
            start=start,
            duration_minutes=duration,
        )
        if conflict:
            raise SlotConflict(conflict.interview_id)

        actor = await resolve_actor(session, actor, identity)
        if not meeting_link and mode_value == InterviewMode.VIDEO.value:
            meeting_link = _meeting_link()
        interview = RecInterview(
            assignment_id=None,
            project_id=project_id,
            scheduled_time=start,
            duration_minutes=duration,
            interview_type=interview_type,
            mode=mode_value,
            meeting_link=meeting_link,
            notes=notes,
            scheduled_by_person_id=actor.person_id,
        )
        session.add(interview)
        await session.flush()
        await record_interview_status(
            session,
            interview=interview,
            status=InterviewOutcome.SCHEDULED.value,
            actor=actor,
            reason=_by_actor("Project interview scheduled", actor),
        )
    return interview


async def create_bulk(
    items: list[Any],
    *,
    actor: ActorContext,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    notifier: NotificationSink | None = None,
    observer: TransitionObserver | None = None,
) -> list[BulkResult]:
    async def _create_one(session: AsyncSession, item: Any) -> InterviewOut:
        payload = InterviewCreate.model_validate(item)
        interview = await schedule(
            session,
            assignment_id=payload.assignment_id,
            scheduled_time=payload.scheduled_time,
            actor=actor,
            duration_minutes=payload.duration_minutes,
            interview_type=payload.interview_type,
            mode=payload.mode,
            meeting_link=payload.meeting_link,
            notes=payload.notes,
            notifier=notifier,
            observer=observer,
        )
        return InterviewOut.model_validate(interview)

    return await run_each(
        items,
        _create_one,
        session_factory=session_factory,
        operation="interviews.create_bulk",
        observer=observer,
    )


async def set_outcome(
    session: AsyncSession,
    *,
    interview_id: int,
    actor: ActorContext,
    outcome: InterviewOutcome | str | None = None,
    sub_status: str | None = None,
    reason: str | None = None,
    observer: TransitionObserver | None = None,
    identity: IdentityLookup | None = None,
) -> RecInterview:
    """
    Record an interview outcome and, when a sub-status is named, move the assignment too.

    A history row is written on every call; without an outcome its status is "updated".
    """
    outcome_value: str | None = None
    if outcome is not None:
        try:
            outcome_value = InterviewOutcome(outcome).value
        except ValueError as exc:
            raise InvalidRequest(f"Unknown interview outcome '{outcome}'") from exc

    async with transaction(session):
        interview = await get_interview(session, interview_id)
        actor = await resolve_actor(session, actor, identity)

        if outcome_value is not None:
            interview.outcome = outcome_value
        interview.notes = _append_note(interview.notes, reason)
        interview.updated_at = datetime.utcnow()
        await session.flush()

        await record_interview_status(
            session,
            interview=interview,
            status=outcome_value or INTERVIEW_HISTORY_UPDATED,
            actor=actor,
            reason=reason,
        )

        if sub_status is not None:
            if interview.assignment_id is None:
                raise InvalidRequest("Interview is not linked to an assignment")
            await transition_sub_status(
                session,
                assignment_id=interview.assignment_id,
                sub_status=sub_status,
                actor=actor,
                reason=reason or _by_actor("Interview outcome updated", actor),
                observer=observer,
            )
    return interview


async def update_outcome_bulk(
    items: list[Any],
    *,
    actor: ActorContext,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    observer: TransitionObserver | None = None,
) -> list[BulkResult]:
    async def _update_one(session: AsyncSession, item: Any) -> InterviewOut:
        payload = InterviewOutcomeBulkItem.model_validate(item)
        interview = await set_outcome(
            session,
            interview_id=payload.interview_id,
            actor=actor,
            outcome=payload.outcome,
            sub_status=payload.sub_status,
            reason=payload.reason,
            observer=observer,
        )
        return InterviewOut.model_validate(interview)

    return await run_each(
        items,
        _update_one,
        session_factory=session_factory,
        operation="interviews.update_outcome_bulk",
        observer=observer,
    )


async def reschedule(
    session: AsyncSession,
    *,
    interview_id: int,
    scheduled_time: datetime,
    actor: ActorContext,
    duration_minutes: int | None = None,
    reason: str | None = None,
    notifier: NotificationSink | None = None,
    observer: TransitionObserver | None = None,
    identity: IdentityLookup | None = None,
) -> RecInterview:
    start = to_local_naive(scheduled_time)
    recruiter_person_id: str | None = None

    async with transaction(session):
        interview = await get_interview(session, interview_id)
        if interview.outcome == InterviewOutcome.CANCELLED.value:
            raise TerminalState(f"Interview {interview_id} was cancelled")
        duration = duration_minutes or interview.duration_minutes
        conflict = await _find_overlap(
            session,
            assignment_id=interview.assignment_id,
            project_id=interview.project_id,
            start=start,
            duration_minutes=duration,
            exclude_interview_id=interview.interview_id,
        )
        if conflict:
            raise SlotConflict(conflict.interview_id)

        actor = await resolve_actor(session, actor, identity)
        interview.scheduled_time = start
        interview.duration_minutes = duration
        # Back to pending until a result is recorded for the new slot.
        interview.outcome = None
        interview.notes = _append_note(interview.notes, reason)
        interview.updated_at = datetime.utcnow()
        await session.flush()

        await record_interview_status(
            session,
            interview=interview,
            status=InterviewOutcome.RESCHEDULED.value,
            actor=actor,
            reason=reason or _by_actor("Interview rescheduled", actor),
        )
        if interview.assignment_id is not None:
            assignment = await get_assignment(session, interview.assignment_id)
            recruiter_person_id = assignment.recruiter_person_id
            await transition_sub_status(
                session,
                assignment_id=interview.assignment_id,
                sub_status=SubStatus.INTERVIEW_RESCHEDULED,
                actor=actor,
                reason=reason or _by_actor("Interview rescheduled", actor),
                observer=observer,
            )

    await notify_quietly(
        notifier or default_notification_sink,
        recruiter_person_id,
        title="Interview rescheduled",
        body=f"Interview moved to {start:%d %b %Y %H:%M}",
        link=_interview_link(interview_id),
        metadata={"assignment_id": interview.assignment_id, "interview_id": interview_id},
    )
    return interview


async def cancel(
    session: AsyncSession,
    *,
    interview_id: int,
    actor: ActorContext,
    reason: str | None = None,
    delete: bool = False,
    identity: IdentityLookup | None = None,
) -> RecInterview:
    """Cancel an interview. With `delete=True` the row is removed; its history rows stay."""
    async with transaction(session):
        interview = await get_interview(session, interview_id)
        if interview.outcome == InterviewOutcome.CANCELLED.value and not delete:
            raise TerminalState(f"Interview {interview_id} is already cancelled")

        actor = await resolve_actor(session, actor, identity)
        interview.outcome = InterviewOutcome.CANCELLED.value
        interview.notes = _append_note(interview.notes, reason)
        interview.updated_at = datetime.utcnow()
        await session.flush()
        await record_interview_status(
            session,
            interview=interview,
            status=InterviewOutcome.CANCELLED.value,
            actor=actor,
            reason=reason or _by_actor("Interview cancelled", actor),
        )
        if delete:
            await session.delete(interview)
            await session.flush()
    return interview


async def list_history(session: AsyncSession, interview_id: int) -> list[RecInterviewStatusHistory]:
    await get_interview(session, interview_id)
    rows = (
        await session.execute(
            select(RecInterviewStatusHistory)
            .where(RecInterviewStatusHistory.interview_id == interview_id)
            .order_by(
                RecInterviewStatusHistory.changed_at.desc(),
                RecInterviewStatusHistory.interview_status_history_id.desc(),
            )
        )
    ).scalars().all()
    return list(rows)


async def dashboard_metrics(session: AsyncSession, *, now: datetime | None = None) -> InterviewDashboardOut:
    now = to_local_naive(now) if now else now_local_naive()
    week_start, week_end = week_bounds(now)
    month_start, month_end = month_bounds(now)

    not_cancelled = or_(RecInterview.outcome.is_(None), RecInterview.outcome != InterviewOutcome.CANCELLED.value)
    in_month = and_(RecInterview.scheduled_time >= month_start, RecInterview.scheduled_time <= month_end)

    this_week_count = (
        await session.execute(
            select(func.count())
            .select_from(RecInterview)
            .where(
                RecInterview.scheduled_time >= week_start,
                RecInterview.scheduled_time <= week_end,
                not_cancelled,
            )
        )
    ).scalar_one()

    completed = (
        await session.execute(
            select(func.count())
            .select_from(RecInterview)
            .where(
                in_month,
                RecInterview.outcome.is_not(None),
                RecInterview.outcome != INTERVIEW_OUTCOME_PENDING,
            )
        )
    ).scalar_one()

    passed = (
        await session.execute(
            select(func.count())
            .select_from(RecInterview)
            .where(in_month, RecInterview.outcome == InterviewOutcome.PASSED.value)
        )
    ).scalar_one()

    pass_rate = round(passed / completed * 100, 2) if completed else 0
    return InterviewDashboardOut(
        this_week_count=this_week_count,
        this_month_completed_count=completed,
        this_month_passed_count=passed,
        pass_rate=pass_rate,
    )
