from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.datetime_utils import now_local_naive
from app.schemas.processing import (
    CancelStepIn,
    DocumentVerificationOut,
    GateEvaluation,
    ProcessingDetailOut,
    ProcessingHistoryOut,
    ProcessingStepOut,
    RejectVerificationIn,
    StepStatusUpdate,
    SubmitDateIn,
    VerifyDocumentIn,
)
from app.schemas.user import ActorContext
from app.services import gating, processing

router = APIRouter(prefix="/processing", tags=["processing"])


@router.post("/{assignment_id}/start", response_model=list[ProcessingStepOut])
async def start_processing(
    assignment_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    steps = await processing.ensure_processing_steps(session, assignment_id=assignment_id, actor=actor)
    now = now_local_naive()
    return [processing.build_step_out(step, now) for step in steps]


@router.get("/{assignment_id}", response_model=ProcessingDetailOut)
async def get_processing_detail(
    assignment_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    return await processing.get_processing_detail(session, assignment_id)


@router.get("/{assignment_id}/history", response_model=list[ProcessingHistoryOut])
async def list_processing_history(
    assignment_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    return await processing.list_processing_history(session, assignment_id)


@router.get("/{assignment_id}/steps/{step_key}/gate", response_model=GateEvaluation)
async def evaluate_gate(
    assignment_id: int,
    step_key: str,
    session: AsyncSession = Depends(deps.get_db_session),
):
    return await gating.evaluate(session, assignment_id=assignment_id, step_key=step_key)


@router.patch("/{assignment_id}/steps/{step_key}", response_model=ProcessingStepOut)
async def update_step_status(
    assignment_id: int,
    step_key: str,
    payload: StepStatusUpdate,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    step = await processing.update_step_status(
        session,
        assignment_id=assignment_id,
        step_key=step_key,
        status=payload.status,
        notes=payload.notes,
        not_applicable_reason=payload.not_applicable_reason,
        actor=actor,
    )
    return processing.build_step_out(step, now_local_naive())


@router.post("/{assignment_id}/steps/{step_key}/submission-date", response_model=ProcessingStepOut)
async def submit_date(
    assignment_id: int,
    step_key: str,
    payload: SubmitDateIn,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    step = await processing.submit_date(
        session,
        assignment_id=assignment_id,
        step_key=step_key,
        submitted_at=payload.submitted_at,
        notes=payload.notes,
        actor=actor,
    )
    return processing.build_step_out(step, now_local_naive())


@router.put("/{assignment_id}/steps/{step_key}/submission-date", response_model=ProcessingStepOut)
async def edit_submitted_date(
    assignment_id: int,
    step_key: str,
    payload: SubmitDateIn,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    step = await processing.edit_submitted_date(
        session,
        assignment_id=assignment_id,
        step_key=step_key,
        submitted_at=payload.submitted_at,
        notes=payload.notes,
        actor=actor,
    )
    return processing.build_step_out(step, now_local_naive())


@router.post("/{assignment_id}/steps/{step_key}/cancel", response_model=ProcessingStepOut)
async def cancel_step(
    assignment_id: int,
    step_key: str,
    payload: CancelStepIn,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    step = await processing.cancel_step(
        session,
        assignment_id=assignment_id,
        step_key=step_key,
        reason=payload.reason,
        actor=actor,
    )
    return processing.build_step_out(step, now_local_naive())


@router.post(
    "/{assignment_id}/steps/{step_key}/verifications",
    response_model=DocumentVerificationOut,
    status_code=status.HTTP_201_CREATED,
)
async def verify_document(
    assignment_id: int,
    step_key: str,
    payload: VerifyDocumentIn,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    # An existing processing copy surfaces as AlreadyInProcessing, answered with 200 by the error handler.
    return await processing.verify_document(
        session,
        assignment_id=assignment_id,
        document_id=payload.document_id,
        step_key=step_key,
        notes=payload.notes,
        actor=actor,
    )


@router.post(
    "/{assignment_id}/verifications/{verification_id}/reject",
    response_model=DocumentVerificationOut,
)
async def reject_verification(
    assignment_id: int,
    verification_id: int,
    payload: RejectVerificationIn,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    return await processing.reject_verification(
        session,
        assignment_id=assignment_id,
        verification_id=verification_id,
        reason=payload.reason,
        actor=actor,
    )
