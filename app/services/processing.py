from __future__ import annotations

from datetime import datetime, timedelta
from functools import partial

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.datetime_utils import now_local_naive, to_local_naive
from app.core.errors import (
    AlreadyInProcessing,
    Conflict,
    GateNotSatisfied,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    TerminalState,
)
from app.core.processing_steps import (
    PROCESSING_STEP_ORDER,
    PROCESSING_STEPS,
    StepConfig,
    allow_not_applicable,
    compute_due_date,
    get_step_config,
    is_overdue,
    next_step_key,
    requires_submission_date,
    step_index,
)
from app.core.statuses import (
    MainStatus,
    ProcessingStepStatus,
    SubStatus,
    VerificationStatus,
    is_step_complete,
)
from app.db.session import after_commit, transaction
from app.models.assignment import RecAssignment
from app.models.document_verification import RecDocumentVerification
from app.models.processing_history import RecProcessingHistory
from app.models.processing_step import RecProcessingStep
from app.schemas.processing import ProcessingDetailOut, ProcessingStepOut
from app.schemas.user import ActorContext
from app.services import gating
from app.services.assignment_transitions import change_main_status, get_assignment, transition_sub_status
from app.services.audit_trail import record_processing_change
from app.services.collaborators import DocumentStore, IdentityLookup, SqlDocumentStore, resolve_actor
from app.services.observer import TransitionObserver, default_observer
from app.services.status_catalog import get_main_status_by_id, get_sub_status_by_id


def _config_or_error(step_key: str) -> StepConfig:
    config = get_step_config(step_key)
    if not config:
        raise InvalidRequest(f"Unknown processing step '{step_key}'")
    return config


def _is_terminal(step: RecProcessingStep) -> bool:
    return (
        step.status in (ProcessingStepStatus.DONE.value, ProcessingStepStatus.REJECTED.value)
        or step.cancelled_at is not None
    )


def _ensure_not_terminal(step: RecProcessingStep) -> None:
    if step.cancelled_at is not None or step.status == ProcessingStepStatus.REJECTED.value:
        raise TerminalState(f"Step {step.step_key} was cancelled")
    if step.status == ProcessingStepStatus.DONE.value:
        raise TerminalState(f"Step {step.step_key} is already completed")


async def _load_steps(session: AsyncSession, assignment_id: int) -> list[RecProcessingStep]:
    rows = (
        await session.execute(select(RecProcessingStep).where(RecProcessingStep.assignment_id == assignment_id))
    ).scalars().all()
    return sorted(rows, key=lambda step: step_index(step.step_key))


async def _find_step(session: AsyncSession, assignment_id: int, step_key: str) -> RecProcessingStep | None:
    return (
        await session.execute(
            select(RecProcessingStep)
            .where(RecProcessingStep.assignment_id == assignment_id, RecProcessingStep.step_key == step_key)
            .limit(1)
        )
    ).scalars().first()


async def _get_or_create_step(session: AsyncSession, assignment_id: int, config: StepConfig) -> RecProcessingStep:
    step = await _find_step(session, assignment_id, config.key)
    if step:
        return step
    step = RecProcessingStep(
        assignment_id=assignment_id,
        step_key=config.key,
        status=ProcessingStepStatus.PENDING.value,
        sla_days=config.default_sla_days,
    )
    session.add(step)
    await session.flush()
    return step


async def ensure_processing_steps(
    session: AsyncSession,
    *,
    assignment_id: int,
    actor: ActorContext,
    observer: TransitionObserver | None = None,
    identity: IdentityLookup | None = None,
) -> list[RecProcessingStep]:
    """
    Create the fixed step sequence for an assignment entering processing.

    Existing steps are left untouched. The first step starts immediately; the assignment
    is moved into the processing main status when it is not there yet.
    """
    async with transaction(session):
        assignment = await get_assignment(session, assignment_id)
        actor = await resolve_actor(session, actor, identity)
        existing = {step.step_key for step in await _load_steps(session, assignment_id)}
        now = now_local_naive()

        for index, config in enumerate(PROCESSING_STEPS):
            if config.key in existing:
                continue
            is_first = index == 0
            step = RecProcessingStep(
                assignment_id=assignment_id,
                step_key=config.key,
                status=ProcessingStepStatus.IN_PROGRESS.value if is_first else ProcessingStepStatus.PENDING.value,
                sla_days=config.default_sla_days,
                started_at=now if is_first else None,
                due_date=compute_due_date(now, config.default_sla_days) if is_first else None,
                last_updated_by_person_id=actor.person_id,
            )
            session.add(step)
            await session.flush()
            if is_first:
                await record_processing_change(
                    session,
                    step=step,
                    previous_status=None,
                    new_status=step.status,
                    actor=actor,
                    notes="Processing started",
                )

        main = await get_main_status_by_id(session, assignment.status_main_id)
        if main.name != MainStatus.PROCESSING.value:
            await change_main_status(
                session,
                assignment_id=assignment_id,
                main_status=MainStatus.PROCESSING,
                sub_status=SubStatus.PROCESSING_IN_PROGRESS,
                actor=actor,
                reason="Transferred to processing",
                observer=observer,
            )
        return await _load_steps(session, assignment_id)


async def _activate_next_step(
    session: AsyncSession,
    *,
    assignment_id: int,
    completed_key: str,
    actor: ActorContext,
    now: datetime,
) -> RecProcessingStep | None:
    next_key = next_step_key(completed_key)
    if not next_key:
        return None
    step = await _find_step(session, assignment_id, next_key)
    if not step or step.status != ProcessingStepStatus.PENDING.value:
        return None
    step.status = ProcessingStepStatus.IN_PROGRESS.value
    step.started_at = now
    step.due_date = compute_due_date(now, step.sla_days)
    step.updated_at = datetime.utcnow()
    await session.flush()
    await record_processing_change(
        session,
        step=step,
        previous_status=ProcessingStepStatus.PENDING.value,
        new_status=step.status,
        actor=actor,
        notes=f"Activated after {completed_key}",
    )
    return step


async def _complete_assignment_if_done(
    session: AsyncSession,
    *,
    assignment: RecAssignment,
    actor: ActorContext,
    observer: TransitionObserver | None,
) -> bool:
    steps = await _load_steps(session, assignment.assignment_id)
    if len(steps) < len(PROCESSING_STEP_ORDER):
        return False
    if not all(is_step_complete(step.status) for step in steps):
        return False
    sub = await get_sub_status_by_id(session, assignment.status_sub_id)
    if sub.name == SubStatus.PROCESSING_COMPLETED.value:
        return False
    await transition_sub_status(
        session,
        assignment_id=assignment.assignment_id,
        sub_status=SubStatus.PROCESSING_COMPLETED,
        actor=actor,
        reason="All processing steps completed",
        observer=observer,
    )
    return True


async def update_step_status(
    session: AsyncSession,
    *,
    assignment_id: int,
    step_key: str,
    status: ProcessingStepStatus | str,
    actor: ActorContext,
    notes: str | None = None,
    not_applicable_reason: str | None = None,
    observer: TransitionObserver | None = None,
    identity: IdentityLookup | None = None,
) -> RecProcessingStep:
    observer = observer or default_observer
    config = _config_or_error(step_key)
    try:
        new_status = ProcessingStepStatus(status)
    except ValueError as exc:
        raise InvalidRequest(f"Unknown step status '{status}'") from exc

    async with transaction(session):
        assignment = await get_assignment(session, assignment_id)
        step = await _get_or_create_step(session, assignment_id, config)

        _ensure_not_terminal(step)
        if new_status == ProcessingStepStatus.REJECTED:
            raise InvalidTransition(f"Step {config.key} can only be rejected by cancelling it")
        if new_status == ProcessingStepStatus.NOT_APPLICABLE and not allow_not_applicable(config.key):
            raise InvalidTransition(f"Step {config.key} cannot be marked as not applicable")
        if new_status == ProcessingStepStatus.DONE:
            evaluation = await gating.evaluate(session, assignment_id=assignment_id, step_key=config.key)
            if not evaluation.ready:
                observer.after_gate_failure(assignment_id=assignment_id, step_key=config.key, evaluation=evaluation)
                raise GateNotSatisfied(config.key, evaluation)

        actor = await resolve_actor(session, actor, identity)
        now = now_local_naive()
        previous_status = step.status

        step.status = new_status.value
        step.sla_days = step.sla_days or config.default_sla_days
        step.last_updated_by_person_id = actor.person_id
        step.updated_at = datetime.utcnow()
        if notes is not None:
            step.notes = notes

        if new_status == ProcessingStepStatus.IN_PROGRESS and step.started_at is None:
            step.started_at = now
            step.due_date = step.due_date or compute_due_date(now, step.sla_days)
        if new_status == ProcessingStepStatus.DONE:
            step.completed_at = now
            step.started_at = step.started_at or now
            step.due_date = step.due_date or compute_due_date(step.started_at, step.sla_days)
        if new_status == ProcessingStepStatus.NOT_APPLICABLE:
            step.not_applicable_reason = not_applicable_reason or "Marked as not applicable"
            step.completed_at = now
        else:
            step.not_applicable_reason = not_applicable_reason

        await session.flush()
        await record_processing_change(
            session,
            step=step,
            previous_status=previous_status,
            new_status=step.status,
            actor=actor,
            notes=notes,
        )

        if is_step_complete(new_status):
            await _activate_next_step(
                session,
                assignment_id=assignment_id,
                completed_key=config.key,
                actor=actor,
                now=now,
            )
            await _complete_assignment_if_done(session, assignment=assignment, actor=actor, observer=observer)

    after_commit(
        session,
        partial(
            observer.after_step_change,
            assignment_id=assignment_id,
            step_key=config.key,
            previous_status=previous_status,
            new_status=step.status,
            actor=actor,
        ),
    )
    return step


async def submit_date(
    session: AsyncSession,
    *,
    assignment_id: int,
    step_key: str,
    submitted_at: datetime,
    actor: ActorContext,
    notes: str | None = None,
    identity: IdentityLookup | None = None,
) -> RecProcessingStep:
    """Record the submission date once; changing it afterwards goes through `edit_submitted_date`."""
    config = _config_or_error(step_key)
    if not config.requires_submission_date:
        raise InvalidTransition(f"Step {config.key} does not take a submission date")

    async with transaction(session):
        await get_assignment(session, assignment_id)
        step = await _get_or_create_step(session, assignment_id, config)
        _ensure_not_terminal(step)
        if step.submitted_at is not None:
            raise Conflict(f"Submission date for {config.key} is already recorded")

        actor = await resolve_actor(session, actor, identity)
        step.submitted_at = to_local_naive(submitted_at)
        step.last_updated_by_person_id = actor.person_id
        step.updated_at = datetime.utcnow()
        await session.flush()
        await record_processing_change(
            session,
            step=step,
            previous_status=step.status,
            new_status=step.status,
            actor=actor,
            notes=notes or f"Submission date set to {step.submitted_at:%Y-%m-%d}",
        )
    return step


async def edit_submitted_date(
    session: AsyncSession,
    *,
    assignment_id: int,
    step_key: str,
    submitted_at: datetime,
    actor: ActorContext,
    notes: str | None = None,
    identity: IdentityLookup | None = None,
) -> RecProcessingStep:
    config = _config_or_error(step_key)
    async with transaction(session):
        await get_assignment(session, assignment_id)
        step = await _find_step(session, assignment_id, config.key)
        if not step:
            raise NotFound("Processing step", config.key)
        _ensure_not_terminal(step)
        if step.submitted_at is None:
            raise InvalidTransition(f"Submission date for {config.key} has not been recorded yet")

        actor = await resolve_actor(session, actor, identity)
        previous = step.submitted_at
        step.submitted_at = to_local_naive(submitted_at)
        step.last_updated_by_person_id = actor.person_id
        step.updated_at = datetime.utcnow()
        await session.flush()
        await record_processing_change(
            session,
            step=step,
            previous_status=step.status,
            new_status=step.status,
            actor=actor,
            notes=notes or f"Submission date changed from {previous:%Y-%m-%d} to {step.submitted_at:%Y-%m-%d}",
        )
    return step


async def cancel_step(
    session: AsyncSession,
    *,
    assignment_id: int,
    step_key: str,
    reason: str,
    actor: ActorContext,
    observer: TransitionObserver | None = None,
    identity: IdentityLookup | None = None,
) -> RecProcessingStep:
    observer = observer or default_observer
    config = _config_or_error(step_key)
    if not (reason or "").strip():
        raise InvalidRequest("A reason is required to cancel a step")

    async with transaction(session):
        await get_assignment(session, assignment_id)
        step = await _get_or_create_step(session, assignment_id, config)
        _ensure_not_terminal(step)

        actor = await resolve_actor(session, actor, identity)
        previous_status = step.status
        now = now_local_naive()
        step.status = ProcessingStepStatus.REJECTED.value
        step.rejection_reason = reason.strip()
        step.cancelled_at = now
        step.last_updated_by_person_id = actor.person_id
        step.updated_at = datetime.utcnow()
        await session.flush()
        await record_processing_change(
            session,
            step=step,
            previous_status=previous_status,
            new_status=step.status,
            actor=actor,
            notes=step.rejection_reason,
        )

    after_commit(
        session,
        partial(
            observer.after_step_change,
            assignment_id=assignment_id,
            step_key=config.key,
            previous_status=previous_status,
            new_status=step.status,
            actor=actor,
        ),
    )
    return step


async def verify_document(
    session: AsyncSession,
    *,
    assignment_id: int,
    document_id: int,
    step_key: str,
    actor: ActorContext,
    notes: str | None = None,
    documents: DocumentStore | None = None,
    identity: IdentityLookup | None = None,
) -> RecDocumentVerification:
    """
    Create the processing-level verified copy of a document for one step.

    Raises AlreadyInProcessing (carrying the existing verification id) instead of
    creating a second copy for the same document and step. A copy that was rejected
    is verified again rather than duplicated.
    """
    config = _config_or_error(step_key)
    store = documents or SqlDocumentStore(session)

    async with transaction(session):
        assignment = await get_assignment(session, assignment_id)
        document = await store.get_document(document_id)
        if not document:
            raise NotFound("Document", document_id)
        if document.candidate_id != assignment.candidate_id:
            raise InvalidRequest(f"Document {document_id} does not belong to the assignment's candidate")

        existing = (
            await session.execute(
                select(RecDocumentVerification)
                .where(
                    RecDocumentVerification.assignment_id == assignment_id,
                    RecDocumentVerification.document_id == document_id,
                    RecDocumentVerification.step_key == config.key,
                    RecDocumentVerification.is_processing_copy.is_(True),
                )
                .limit(1)
            )
        ).scalars().first()
        if existing and existing.status != VerificationStatus.REJECTED.value:
            raise AlreadyInProcessing(document_id, config.key, existing.document_verification_id)

        step = await _find_step(session, assignment_id, config.key)
        if step and step.cancelled_at is not None:
            raise TerminalState(f"Step {config.key} was cancelled")

        actor = await resolve_actor(session, actor, identity)
        if existing:
            # A rejected copy is verified again in place.
            existing.status = VerificationStatus.VERIFIED.value
            existing.verified_by_person_id = actor.person_id
            existing.verified_by_name = actor.name
            existing.notes = notes
            existing.verified_at = now_local_naive()
            existing.updated_at = datetime.utcnow()
            await session.flush()
            return existing

        verification = await store.create_verification(
            assignment_id=assignment_id,
            document=document,
            step_key=config.key,
            is_processing_copy=True,
            status=VerificationStatus.VERIFIED.value,
            actor=actor,
            notes=notes,
            verified_at=now_local_naive(),
        )
    return verification


async def reject_verification(
    session: AsyncSession,
    *,
    assignment_id: int,
    verification_id: int,
    reason: str,
    actor: ActorContext,
    identity: IdentityLookup | None = None,
) -> RecDocumentVerification:
    """Withdraw a processing copy so the step gate counts its document as missing again."""
    reason = (reason or "").strip()
    if not reason:
        raise InvalidRequest("A rejection reason is required")

    async with transaction(session):
        verification = await session.get(RecDocumentVerification, verification_id)
        if (
            verification is None
            or verification.assignment_id != assignment_id
            or not verification.is_processing_copy
        ):
            raise NotFound("Document verification", verification_id)
        if verification.status == VerificationStatus.REJECTED.value:
            raise Conflict(f"Document verification {verification_id} is already rejected")
        if verification.step_key:
            step = await _find_step(session, assignment_id, verification.step_key)
            if step and step.status == ProcessingStepStatus.DONE.value:
                raise TerminalState(f"Step {verification.step_key} is already done")

        actor = await resolve_actor(session, actor, identity)
        verification.status = VerificationStatus.REJECTED.value
        verification.verified_by_person_id = actor.person_id
        verification.verified_by_name = actor.name
        verification.notes = reason
        verification.verified_at = None
        verification.updated_at = datetime.utcnow()
        await session.flush()
    return verification


async def list_processing_history(session: AsyncSession, assignment_id: int) -> list[RecProcessingHistory]:
    await get_assignment(session, assignment_id)
    rows = (
        await session.execute(
            select(RecProcessingHistory)
            .where(RecProcessingHistory.assignment_id == assignment_id)
            .order_by(RecProcessingHistory.changed_at.desc(), RecProcessingHistory.processing_history_id.desc())
        )
    ).scalars().all()
    return list(rows)


def build_step_out(step: RecProcessingStep, now: datetime) -> ProcessingStepOut:
    config = get_step_config(step.step_key)
    return ProcessingStepOut(
        processing_step_id=step.processing_step_id,
        assignment_id=step.assignment_id,
        step_key=step.step_key,
        label=config.label if config else step.step_key,
        status=step.status,
        sla_days=step.sla_days,
        allow_not_applicable=allow_not_applicable(step.step_key),
        requires_submission_date=requires_submission_date(step.step_key),
        due_date=step.due_date,
        started_at=step.started_at,
        completed_at=step.completed_at,
        submitted_at=step.submitted_at,
        cancelled_at=step.cancelled_at,
        notes=step.notes,
        not_applicable_reason=step.not_applicable_reason,
        rejection_reason=step.rejection_reason,
        is_overdue=is_overdue(status=step.status, due_date=step.due_date, now=now),
    )


async def get_processing_detail(
    session: AsyncSession,
    assignment_id: int,
    *,
    now: datetime | None = None,
) -> ProcessingDetailOut:
    await get_assignment(session, assignment_id)
    now = now or now_local_naive()
    steps = await _load_steps(session, assignment_id)

    current = next((step for step in steps if step.status == ProcessingStepStatus.IN_PROGRESS.value), None)
    if current is None:
        current = next((step for step in steps if not is_step_complete(step.status) and not _is_terminal(step)), None)
    completed = sum(1 for step in steps if is_step_complete(step.status))
    total = len(PROCESSING_STEP_ORDER)
    return ProcessingDetailOut(
        assignment_id=assignment_id,
        steps=[build_step_out(step, now) for step in steps],
        current_step_key=current.step_key if current else None,
        completed_count=completed,
        total_count=total,
        progress_percent=round(completed / total * 100, 2),
    )


async def list_overdue_steps(session: AsyncSession, *, now: datetime) -> list[RecProcessingStep]:
    rows = (
        await session.execute(
            select(RecProcessingStep)
            .where(
                RecProcessingStep.status == ProcessingStepStatus.IN_PROGRESS.value,
                RecProcessingStep.due_date.is_not(None),
                RecProcessingStep.due_date < now,
            )
            .order_by(RecProcessingStep.due_date)
        )
    ).scalars().all()
    return list(rows)


async def list_submission_followups(
    session: AsyncSession,
    *,
    now: datetime,
    followup_days: int,
) -> list[RecProcessingStep]:
    """Submission-date steps submitted at least `followup_days` ago that are still open."""
    submission_keys = [step.key for step in PROCESSING_STEPS if step.requires_submission_date]
    cutoff = now - timedelta(days=followup_days)
    rows = (
        await session.execute(
            select(RecProcessingStep)
            .where(
                RecProcessingStep.step_key.in_(submission_keys),
                RecProcessingStep.submitted_at.is_not(None),
                RecProcessingStep.submitted_at <= cutoff,
                RecProcessingStep.status.in_(
                    [ProcessingStepStatus.PENDING.value, ProcessingStepStatus.IN_PROGRESS.value]
                ),
                RecProcessingStep.cancelled_at.is_(None),
            )
            .order_by(RecProcessingStep.submitted_at)
        )
    ).scalars().all()
    return list(rows)
