"""Append-only history writers. Rows are only ever inserted here."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.assignment_status_history import RecAssignmentStatusHistory
from app.models.interview import RecInterview
from app.models.interview_status_history import RecInterviewStatusHistory
from app.models.processing_history import RecProcessingHistory
from app.models.processing_step import RecProcessingStep
from app.models.status import RecStatusMain, RecStatusSub
from app.schemas.user import ActorContext


def interview_status_label(status: str) -> str:
    return status.replace("-", " ").replace("_", " ").title()


async def record_assignment_status_change(
    session: AsyncSession,
    *,
    assignment_id: int,
    previous_main: RecStatusMain | None,
    previous_sub: RecStatusSub | None,
    new_main: RecStatusMain,
    new_sub: RecStatusSub,
    actor: ActorContext,
    reason: str | None = None,
    notes: str | None = None,
    changed_at: datetime | None = None,
) -> RecAssignmentStatusHistory:
    entry = RecAssignmentStatusHistory(
        assignment_id=assignment_id,
        previous_status_main_id=previous_main.status_main_id if previous_main else None,
        previous_status_main_name=previous_main.name if previous_main else None,
        previous_status_main_label=previous_main.label if previous_main else None,
        previous_status_sub_id=previous_sub.status_sub_id if previous_sub else None,
        previous_status_sub_name=previous_sub.name if previous_sub else None,
        previous_status_sub_label=previous_sub.label if previous_sub else None,
        status_main_id=new_main.status_main_id,
        status_main_name=new_main.name,
        status_main_label=new_main.label,
        status_sub_id=new_sub.status_sub_id,
        status_sub_name=new_sub.name,
        status_sub_label=new_sub.label,
        changed_by_person_id=actor.person_id,
        changed_by_name=actor.name,
        reason=reason,
        notes=notes,
        changed_at=changed_at or datetime.utcnow(),
    )
    session.add(entry)
    await session.flush()
    return entry


async def record_interview_status(
    session: AsyncSession,
    *,
    interview: RecInterview,
    status: str,
    actor: ActorContext,
    reason: str | None = None,
) -> RecInterviewStatusHistory:
    entry = RecInterviewStatusHistory(
        interview_id=interview.interview_id,
        assignment_id=interview.assignment_id,
        interview_type=interview.interview_type,
        status=status,
        status_snapshot=interview_status_label(status),
        changed_by_person_id=actor.person_id,
        changed_by_name=actor.name,
        reason=reason,
        changed_at=datetime.utcnow(),
    )
    session.add(entry)
    await session.flush()
    return entry


async def record_processing_change(
    session: AsyncSession,
    *,
    step: RecProcessingStep,
    previous_status: str | None,
    new_status: str,
    actor: ActorContext,
    notes: str | None = None,
) -> RecProcessingHistory:
    entry = RecProcessingHistory(
        assignment_id=step.assignment_id,
        processing_step_id=step.processing_step_id,
        step_key=step.step_key,
        previous_status=previous_status,
        new_status=new_status,
        changed_by_person_id=actor.person_id,
        changed_by_name=actor.name,
        notes=notes,
        changed_at=datetime.utcnow(),
    )
    session.add(entry)
    await session.flush()
    return entry
