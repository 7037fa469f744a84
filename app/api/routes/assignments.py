from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.schemas.assignment import (
    AssignmentNominate,
    AssignmentOut,
    AssignmentStatusHistoryOut,
    MainStatusChange,
    SubStatusTransition,
)
from app.schemas.user import ActorContext
from app.services import assignment_transitions

router = APIRouter(prefix="/assignments", tags=["assignments"])


@router.post("", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
async def nominate_candidate(
    payload: AssignmentNominate,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await assignment_transitions.nominate(
        session,
        candidate_id=payload.candidate_id,
        project_id=payload.project_id,
        role_id=payload.role_id,
        recruiter_person_id=payload.recruiter_person_id,
        notes=payload.notes,
        actor=actor,
    )


@router.get("/{assignment_id}", response_model=AssignmentOut)
async def get_assignment(
    assignment_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    return await assignment_transitions.get_assignment_out(session, assignment_id)


@router.post("/{assignment_id}/sub-status", response_model=AssignmentOut)
async def transition_sub_status(
    assignment_id: int,
    payload: SubStatusTransition,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await assignment_transitions.transition_sub_status(
        session,
        assignment_id=assignment_id,
        sub_status=payload.sub_status,
        reason=payload.reason,
        notes=payload.notes,
        actor=actor,
    )


@router.post("/{assignment_id}/main-status", response_model=AssignmentOut)
async def change_main_status(
    assignment_id: int,
    payload: MainStatusChange,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await assignment_transitions.change_main_status(
        session,
        assignment_id=assignment_id,
        main_status=payload.main_status,
        sub_status=payload.sub_status,
        reason=payload.reason,
        actor=actor,
    )


@router.get("/{assignment_id}/history", response_model=list[AssignmentStatusHistoryOut])
async def list_status_history(
    assignment_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    return await assignment_transitions.list_status_history(session, assignment_id)
