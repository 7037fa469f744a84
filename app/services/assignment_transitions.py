from __future__ import annotations

from datetime import datetime
from functools import partial

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, InvalidRequest, NotFound
from app.core.statuses import MainStatus, SubStatus
from app.db.session import after_commit, transaction
from app.models.assignment import RecAssignment
from app.models.assignment_status_history import RecAssignmentStatusHistory
from app.models.candidate import RecCandidate
from app.models.project import RecProject
from app.models.project_role import RecProjectRole
from app.models.status import RecStatusMain, RecStatusSub
from app.schemas.assignment import AssignmentOut
from app.schemas.user import ActorContext
from app.services.audit_trail import record_assignment_status_change
from app.services.collaborators import IdentityLookup, resolve_actor
from app.services.observer import TransitionObserver, default_observer
from app.services.status_catalog import (
    get_main_status_by_id,
    get_sub_status_by_id,
    resolve_caller_sub_status,
    resolve_main_status,
    resolve_sub_status,
)


async def get_assignment(session: AsyncSession, assignment_id: int) -> RecAssignment:
    assignment = await session.get(RecAssignment, assignment_id)
    if not assignment:
        raise NotFound("Assignment", assignment_id)
    return assignment


async def build_assignment_out(session: AsyncSession, assignment: RecAssignment) -> AssignmentOut:
    main = await get_main_status_by_id(session, assignment.status_main_id)
    sub = await get_sub_status_by_id(session, assignment.status_sub_id)
    return AssignmentOut(
        assignment_id=assignment.assignment_id,
        candidate_id=assignment.candidate_id,
        project_id=assignment.project_id,
        role_id=assignment.role_id,
        recruiter_person_id=assignment.recruiter_person_id,
        main_status=main.name,
        main_status_label=main.label,
        sub_status=sub.name,
        sub_status_label=sub.label,
        is_sent_for_document_verification=bool(assignment.is_sent_for_document_verification),
        notes=assignment.notes,
        created_at=assignment.created_at,
        updated_at=assignment.updated_at,
    )


async def get_assignment_out(session: AsyncSession, assignment_id: int) -> AssignmentOut:
    return await build_assignment_out(session, await get_assignment(session, assignment_id))


async def _apply_status(
    session: AsyncSession,
    *,
    assignment: RecAssignment,
    new_main: RecStatusMain,
    new_sub: RecStatusSub,
    actor: ActorContext,
    reason: str | None,
    notes: str | None,
) -> RecAssignmentStatusHistory:
    previous_main = await session.get(RecStatusMain, assignment.status_main_id) if assignment.status_main_id else None
    previous_sub = await session.get(RecStatusSub, assignment.status_sub_id) if assignment.status_sub_id else None

    now = datetime.utcnow()
    assignment.status_main_id = new_main.status_main_id
    assignment.status_sub_id = new_sub.status_sub_id
    assignment.updated_at = now

    # Reaching any documents-stage sub-status marks the assignment as sent for verification, permanently.
    owner = await get_main_status_by_id(session, new_sub.status_main_id)
    if owner.name == MainStatus.DOCUMENTS.value:
        assignment.is_sent_for_document_verification = True

    await session.flush()
    return await record_assignment_status_change(
        session,
        assignment_id=assignment.assignment_id,
        previous_main=previous_main,
        previous_sub=previous_sub,
        new_main=new_main,
        new_sub=new_sub,
        actor=actor,
        reason=reason,
        notes=notes,
        changed_at=now,
    )


async def transition_sub_status(
    session: AsyncSession,
    *,
    assignment_id: int,
    sub_status: SubStatus | str,
    actor: ActorContext,
    reason: str | None = None,
    notes: str | None = None,
    observer: TransitionObserver | None = None,
    identity: IdentityLookup | None = None,
) -> AssignmentOut:
    """
    Move an assignment to a new sub-status and append its history row, as one unit.

    Only the sub-status changes; the main status moves through `change_main_status`.
    A raw string is treated as caller input (InvalidRequest when unresolvable); a
    `SubStatus` member missing from the catalog is a configuration error.
    """
    observer = observer or default_observer
    async with transaction(session):
        assignment = await get_assignment(session, assignment_id)
        if isinstance(sub_status, SubStatus):
            new_sub = await resolve_sub_status(session, sub_status)
        else:
            new_sub = await resolve_caller_sub_status(session, sub_status)
        current_main = await get_main_status_by_id(session, assignment.status_main_id)
        actor = await resolve_actor(session, actor, identity)
        entry = await _apply_status(
            session,
            assignment=assignment,
            new_main=current_main,
            new_sub=new_sub,
            actor=actor,
            reason=reason,
            notes=notes,
        )
        out = await build_assignment_out(session, assignment)

    after_commit(
        session,
        partial(
            observer.after_transition,
            assignment_id=assignment_id,
            previous_sub_status=entry.previous_status_sub_name,
            new_sub_status=new_sub.name,
            actor=actor,
        ),
    )
    return out


async def change_main_status(
    session: AsyncSession,
    *,
    assignment_id: int,
    main_status: MainStatus | str,
    sub_status: SubStatus | str,
    actor: ActorContext,
    reason: str | None = None,
    notes: str | None = None,
    observer: TransitionObserver | None = None,
    identity: IdentityLookup | None = None,
) -> AssignmentOut:
    observer = observer or default_observer
    async with transaction(session):
        assignment = await get_assignment(session, assignment_id)
        if isinstance(main_status, MainStatus):
            new_main = await resolve_main_status(session, main_status)
        else:
            try:
                parsed = MainStatus((main_status or "").strip().lower())
            except ValueError as exc:
                raise InvalidRequest(f"Unknown main status '{main_status}'") from exc
            new_main = await resolve_main_status(session, parsed)
        if isinstance(sub_status, SubStatus):
            new_sub = await resolve_sub_status(session, sub_status)
        else:
            new_sub = await resolve_caller_sub_status(session, sub_status)
        if new_sub.status_main_id != new_main.status_main_id:
            raise Conflict(f"Sub-status '{new_sub.name}' does not belong to main status '{new_main.name}'")

        actor = await resolve_actor(session, actor, identity)
        entry = await _apply_status(
            session,
            assignment=assignment,
            new_main=new_main,
            new_sub=new_sub,
            actor=actor,
            reason=reason,
            notes=notes,
        )
        out = await build_assignment_out(session, assignment)

    after_commit(
        session,
        partial(
            observer.after_transition,
            assignment_id=assignment_id,
            previous_sub_status=entry.previous_status_sub_name,
            new_sub_status=new_sub.name,
            actor=actor,
        ),
    )
    return out


async def nominate(
    session: AsyncSession,
    *,
    candidate_id: int,
    project_id: int,
    role_id: int | None,
    actor: ActorContext,
    recruiter_person_id: str | None = None,
    notes: str | None = None,
    observer: TransitionObserver | None = None,
    identity: IdentityLookup | None = None,
) -> AssignmentOut:
    observer = observer or default_observer
    async with transaction(session):
        if not await session.get(RecCandidate, candidate_id):
            raise NotFound("Candidate", candidate_id)
        if not await session.get(RecProject, project_id):
            raise NotFound("Project", project_id)
        if role_id is not None:
            role = await session.get(RecProjectRole, role_id)
            if not role or role.project_id != project_id:
                raise InvalidRequest(f"Role {role_id} does not belong to project {project_id}")

        duplicate_stmt = select(RecAssignment.assignment_id).where(
            RecAssignment.candidate_id == candidate_id,
            RecAssignment.project_id == project_id,
        )
        if role_id is None:
            duplicate_stmt = duplicate_stmt.where(RecAssignment.role_id.is_(None))
        else:
            duplicate_stmt = duplicate_stmt.where(RecAssignment.role_id == role_id)
        if (await session.execute(duplicate_stmt.limit(1))).scalar_one_or_none() is not None:
            raise Conflict("Candidate is already nominated for this project role")

        main = await resolve_main_status(session, MainStatus.NOMINATED)
        sub = await resolve_sub_status(session, SubStatus.NOMINATED_INITIAL)
        assignment = RecAssignment(
            candidate_id=candidate_id,
            project_id=project_id,
            role_id=role_id,
            recruiter_person_id=recruiter_person_id,
            status_main_id=main.status_main_id,
            status_sub_id=sub.status_sub_id,
            is_sent_for_document_verification=False,
            notes=notes,
        )
        session.add(assignment)
        await session.flush()

        actor = await resolve_actor(session, actor, identity)
        await record_assignment_status_change(
            session,
            assignment_id=assignment.assignment_id,
            previous_main=None,
            previous_sub=None,
            new_main=main,
            new_sub=sub,
            actor=actor,
            reason=f"Nominated by {actor.name}" if actor.name else "Nominated",
            notes=notes,
        )
        out = await build_assignment_out(session, assignment)

    after_commit(
        session,
        partial(
            observer.after_transition,
            assignment_id=out.assignment_id,
            previous_sub_status=None,
            new_sub_status=sub.name,
            actor=actor,
        ),
    )
    return out


async def list_status_history(session: AsyncSession, assignment_id: int) -> list[RecAssignmentStatusHistory]:
    await get_assignment(session, assignment_id)
    rows = (
        await session.execute(
            select(RecAssignmentStatusHistory)
            .where(RecAssignmentStatusHistory.assignment_id == assignment_id)
            .order_by(
                RecAssignmentStatusHistory.changed_at.desc(),
                RecAssignmentStatusHistory.assignment_status_history_id.desc(),
            )
        )
    ).scalars().all()
    return list(rows)
