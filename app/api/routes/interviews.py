from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api import deps
from app.schemas.bulk import BulkRequest, BulkResult
from app.schemas.interview import (
    InterviewCancel,
    InterviewCreate,
    InterviewHistoryOut,
    InterviewListFilters,
    InterviewListPage,
    InterviewOut,
    InterviewOutcomeUpdate,
    InterviewReschedule,
    ProjectInterviewCreate,
)
from app.schemas.user import ActorContext
from app.services import interview_queries, interviews

router = APIRouter(prefix="/interviews", tags=["interviews"])


def _list_filters(
    search: Optional[str] = Query(default=None),
    project_id: Optional[int] = Query(default=None),
    date_from: Optional[datetime] = Query(default=None),
    date_to: Optional[datetime] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> InterviewListFilters:
    try:
        return InterviewListFilters(
            search=search,
            project_id=project_id,
            date_from=date_from,
            date_to=date_to,
            page=page,
            page_size=page_size,
        )
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc


@router.post("", response_model=InterviewOut, status_code=status.HTTP_201_CREATED)
async def schedule_interview(
    payload: InterviewCreate,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await interviews.schedule(
        session,
        assignment_id=payload.assignment_id,
        scheduled_time=payload.scheduled_time,
        duration_minutes=payload.duration_minutes,
        interview_type=payload.interview_type,
        mode=payload.mode,
        meeting_link=payload.meeting_link,
        notes=payload.notes,
        actor=actor,
    )


@router.post("/project", response_model=InterviewOut, status_code=status.HTTP_201_CREATED)
async def schedule_project_interview(
    payload: ProjectInterviewCreate,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await interviews.schedule_for_project(
        session,
        project_id=payload.project_id,
        scheduled_time=payload.scheduled_time,
        duration_minutes=payload.duration_minutes,
        interview_type=payload.interview_type,
        mode=payload.mode,
        meeting_link=payload.meeting_link,
        notes=payload.notes,
        actor=actor,
    )


@router.post("/bulk", response_model=list[BulkResult])
async def schedule_interviews_bulk(
    payload: BulkRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(deps.get_session_factory),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await interviews.create_bulk(payload.items, actor=actor, session_factory=session_factory)


@router.post("/outcomes/bulk", response_model=list[BulkResult])
async def update_outcomes_bulk(
    payload: BulkRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(deps.get_session_factory),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await interviews.update_outcome_bulk(payload.items, actor=actor, session_factory=session_factory)


@router.get("/upcoming", response_model=InterviewListPage)
async def list_upcoming_interviews(
    filters: InterviewListFilters = Depends(_list_filters),
    session: AsyncSession = Depends(deps.get_db_session),
):
    return await interview_queries.list_upcoming(session, filters)


@router.get("/assigned", response_model=InterviewListPage)
async def list_assigned_interviews(
    filters: InterviewListFilters = Depends(_list_filters),
    session: AsyncSession = Depends(deps.get_db_session),
):
    return await interview_queries.list_assigned(session, filters)


@router.get("/{interview_id}", response_model=InterviewOut)
async def get_interview(
    interview_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    return await interviews.get_interview(session, interview_id)


@router.patch("/{interview_id}/outcome", response_model=InterviewOut)
async def set_interview_outcome(
    interview_id: int,
    payload: InterviewOutcomeUpdate,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await interviews.set_outcome(
        session,
        interview_id=interview_id,
        outcome=payload.outcome,
        sub_status=payload.sub_status,
        reason=payload.reason,
        actor=actor,
    )


@router.post("/{interview_id}/reschedule", response_model=InterviewOut)
async def reschedule_interview(
    interview_id: int,
    payload: InterviewReschedule,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await interviews.reschedule(
        session,
        interview_id=interview_id,
        scheduled_time=payload.scheduled_time,
        duration_minutes=payload.duration_minutes,
        reason=payload.reason,
        actor=actor,
    )


@router.post("/{interview_id}/cancel", response_model=InterviewOut)
async def cancel_interview(
    interview_id: int,
    payload: InterviewCancel,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await interviews.cancel(
        session,
        interview_id=interview_id,
        reason=payload.reason,
        delete=payload.delete,
        actor=actor,
    )


@router.get("/{interview_id}/history", response_model=list[InterviewHistoryOut])
async def list_interview_history(
    interview_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    return await interviews.list_history(session, interview_id)
