from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidRequest
from app.core.processing_steps import get_step_config, requires_submission_date
from app.core.statuses import VerificationStatus
from app.models.document_requirement import RecDocumentRequirement
from app.models.document_verification import RecDocumentVerification
from app.models.processing_step import RecProcessingStep
from app.schemas.processing import GateEvaluation
from app.services.assignment_transitions import get_assignment


@dataclass(frozen=True)
class Requirement:
    doc_type: str
    label: str
    mandatory: bool = True
    role_id: int | None = None


@dataclass(frozen=True)
class Verification:
    doc_type: str
    status: str


def evaluate_requirements(
    *,
    step_key: str,
    role_id: int | None,
    requirements: Iterable[Requirement],
    verifications: Iterable[Verification],
    submitted_at_present: bool,
) -> GateEvaluation:
    applicable = [
        req for req in requirements if req.mandatory and (req.role_id is None or req.role_id == role_id)
    ]
    # A doc type required twice (generic and role-specific) counts once.
    required: dict[str, str] = {}
    for req in applicable:
        required.setdefault(req.doc_type, req.label)

    verified_types = {item.doc_type for item in verifications if item.status == VerificationStatus.VERIFIED.value}
    missing_labels = [label for doc_type, label in required.items() if doc_type not in verified_types]

    submission_required = requires_submission_date(step_key)
    verified_count = len(required) - len(missing_labels)
    ready = not missing_labels and (not submission_required or submitted_at_present)
    return GateEvaluation(
        step_key=step_key,
        total_required=len(required),
        verified_count=verified_count,
        missing_count=len(missing_labels),
        missing_labels=missing_labels,
        submission_required=submission_required,
        has_submission=submitted_at_present,
        ready=ready,
    )


async def evaluate(session: AsyncSession, *, assignment_id: int, step_key: str) -> GateEvaluation:
    """Read-only: may be polled freely."""
    config = get_step_config(step_key)
    if not config:
        raise InvalidRequest(f"Unknown processing step '{step_key}'")
    assignment = await get_assignment(session, assignment_id)

    requirement_rows = (
        await session.execute(
            select(RecDocumentRequirement)
            .where(
                RecDocumentRequirement.step_key == config.key,
                or_(RecDocumentRequirement.role_id.is_(None), RecDocumentRequirement.role_id == assignment.role_id),
            )
            .order_by(RecDocumentRequirement.document_requirement_id)
        )
    ).scalars().all()

    verification_rows = (
        await session.execute(
            select(RecDocumentVerification).where(
                RecDocumentVerification.assignment_id == assignment_id,
                RecDocumentVerification.step_key == config.key,
                RecDocumentVerification.is_processing_copy.is_(True),
            )
        )
    ).scalars().all()

    step = (
        await session.execute(
            select(RecProcessingStep).where(
                RecProcessingStep.assignment_id == assignment_id,
                RecProcessingStep.step_key == config.key,
            )
        )
    ).scalars().first()

    return evaluate_requirements(
        step_key=config.key,
        role_id=assignment.role_id,
        requirements=[
            Requirement(doc_type=row.doc_type, label=row.label, mandatory=bool(row.mandatory), role_id=row.role_id)
            for row in requirement_rows
        ],
        verifications=[Verification(doc_type=row.doc_type, status=row.status) for row in verification_rows],
        submitted_at_present=bool(step and step.submitted_at is not None),
    )
