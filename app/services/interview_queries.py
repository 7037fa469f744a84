"""Read-only interview listings, one row shape per listing."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.datetime_utils import now_local_naive
from app.core.statuses import InterviewOutcome, SubStatus
from app.models.assignment import RecAssignment
from app.models.candidate import RecCandidate
from app.models.interview import RecInterview
from app.models.project import RecProject
from app.models.project_role import RecProjectRole
from app.models.status import RecStatusSub
from app.schemas.interview import InterviewListFilters, InterviewListItem, InterviewListPage

UPCOMING_SUB_STATUSES: tuple[str, ...] = (
    SubStatus.INTERVIEW_SCHEDULED.value,
    SubStatus.INTERVIEW_RESCHEDULED.value,
)
ASSIGNED_SUB_STATUSES: tuple[str, ...] = (SubStatus.INTERVIEW_ASSIGNED.value,)


def _latest_interview_subquery():
    return (
        select(
            RecInterview.assignment_id.label("assignment_id"),
            func.max(RecInterview.interview_id).label("interview_id"),
        )
        .where(
            RecInterview.assignment_id.is_not(None),
            or_(RecInterview.outcome.is_(None), RecInterview.outcome != InterviewOutcome.CANCELLED.value),
        )
        .group_by(RecInterview.assignment_id)
        .subquery()
    )


async def _list(
    session: AsyncSession,
    *,
    sub_statuses: tuple[str, ...],
    filters: InterviewListFilters,
    now: datetime,
    filter_on_interview_time: bool,
) -> InterviewListPage:
    latest = _latest_interview_subquery()
    stmt = (
        select(RecAssignment, RecStatusSub, RecCandidate, RecProject, RecProjectRole, RecInterview)
        .join(RecStatusSub, RecStatusSub.status_sub_id == RecAssignment.status_sub_id)
        .join(RecCandidate, RecCandidate.candidate_id == RecAssignment.candidate_id)
        .join(RecProject, RecProject.project_id == RecAssignment.project_id)
        .outerjoin(RecProjectRole, RecProjectRole.role_id == RecAssignment.role_id)
        .outerjoin(latest, latest.c.assignment_id == RecAssignment.assignment_id)
        .outerjoin(RecInterview, RecInterview.interview_id == latest.c.interview_id)
        .where(RecStatusSub.name.in_(sub_statuses))
    )

    if filters.project_id is not None:
        stmt = stmt.where(RecAssignment.project_id == filters.project_id)
    if filters.search:
        term = f"%{filters.search.strip()}%"
        stmt = stmt.where(
            or_(
                RecCandidate.full_name.ilike(term),
                RecCandidate.email.ilike(term),
                RecProject.title.ilike(term),
                RecProjectRole.designation.ilike(term),
            )
        )
    date_column = RecInterview.scheduled_time if filter_on_interview_time else RecAssignment.updated_at
    if filters.date_from is not None:
        stmt = stmt.where(date_column >= filters.date_from)
    if filters.date_to is not None:
        stmt = stmt.where(date_column <= filters.date_to)

    total = (await session.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    if filter_on_interview_time:
        stmt = stmt.order_by(RecInterview.scheduled_time.asc(), RecAssignment.assignment_id.asc())
    else:
        stmt = stmt.order_by(RecAssignment.updated_at.desc(), RecAssignment.assignment_id.desc())
    offset = (filters.page - 1) * filters.page_size
    rows = (await session.execute(stmt.offset(offset).limit(filters.page_size))).all()

    items: list[InterviewListItem] = []
    for assignment, sub, candidate, project, role, interview in rows:
        items.append(
            InterviewListItem(
                assignment_id=assignment.assignment_id,
                candidate_id=candidate.candidate_id,
                candidate_name=candidate.full_name,
                candidate_email=candidate.email,
                project_id=project.project_id,
                project_title=project.title,
                role_id=role.role_id if role else None,
                role_designation=role.designation if role else None,
                sub_status=sub.name,
                sub_status_label=sub.label,
                interview_id=interview.interview_id if interview else None,
                scheduled_time=interview.scheduled_time if interview else None,
                duration_minutes=interview.duration_minutes if interview else None,
                mode=interview.mode if interview else None,
                meeting_link=interview.meeting_link if interview else None,
                outcome=interview.outcome if interview else None,
                expired=bool(interview and interview.scheduled_time < now),
            )
        )
    return InterviewListPage(items=items, total=total, page=filters.page, page_size=filters.page_size)


async def list_upcoming(
    session: AsyncSession,
    filters: InterviewListFilters,
    *,
    now: datetime | None = None,
) -> InterviewListPage:
    return await _list(
        session,
        sub_statuses=UPCOMING_SUB_STATUSES,
        filters=filters,
        now=now or now_local_naive(),
        filter_on_interview_time=True,
    )


async def list_assigned(
    session: AsyncSession,
    filters: InterviewListFilters,
    *,
    now: datetime | None = None,
) -> InterviewListPage:
    return await _list(
        session,
        sub_statuses=ASSIGNED_SUB_STATUSES,
        filters=filters,
        now=now or now_local_naive(),
        filter_on_interview_time=False,
    )
