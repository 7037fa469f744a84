from datetime import datetime, timedelta

import pytest

from app.core.errors import (
    AlreadyInProcessing,
    Conflict,
    GateNotSatisfied,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    TerminalState,
)
from app.core.processing_steps import PROCESSING_STEP_ORDER, requires_submission_date
from app.models import RecCandidate, RecDocument, RecDocumentRequirement
from app.services import gating, processing
from app.services.assignment_transitions import get_assignment_out


async def _start(session, assignment_id, actor, observer=None):
    return await processing.ensure_processing_steps(
        session,
        assignment_id=assignment_id,
        actor=actor,
        observer=observer,
    )


async def _steps_by_key(session, assignment_id):
    detail = await processing.get_processing_detail(session, assignment_id)
    return {step.step_key: step for step in detail.steps}


async def test_start_creates_all_steps(db_session, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    steps = await _start(db_session, assignment_id, actor)

    assert [step.step_key for step in steps] == list(PROCESSING_STEP_ORDER)
    first = steps[0]
    assert first.status == "IN_PROGRESS"
    assert first.sla_days == 5
    assert first.due_date == first.started_at + timedelta(days=5)
    assert all(step.status == "PENDING" for step in steps[1:])

    out = await get_assignment_out(db_session, assignment_id)
    assert out.main_status == "processing"
    assert out.sub_status == "processing_in_progress"

    history = await processing.list_processing_history(db_session, assignment_id)
    assert len(history) == 1
    assert history[0].notes == "Processing started"

    # Running it again leaves existing steps and history alone.
    again = await _start(db_session, assignment_id, actor)
    assert len(again) == len(PROCESSING_STEP_ORDER)
    assert len(await processing.list_processing_history(db_session, assignment_id)) == 1


async def test_detail_reports_progress_and_overdue(db_session, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    await _start(db_session, assignment_id, actor)

    detail = await processing.get_processing_detail(db_session, assignment_id)
    assert detail.current_step_key == "MEDICAL_CERTIFICATE"
    assert detail.completed_count == 0
    assert detail.total_count == 11
    assert detail.progress_percent == 0
    assert detail.steps[0].label == "Medical Certificate"
    assert detail.steps[0].is_overdue is False

    later = await processing.get_processing_detail(db_session, assignment_id, now=datetime.now() + timedelta(days=30))
    assert later.steps[0].is_overdue is True
    assert later.steps[1].is_overdue is False


async def test_gate_blocks_until_documents_are_verified(db_session, reference_rows, sample_assignment, actor, observer):
    assignment_id = sample_assignment.assignment_id
    candidate_id = reference_rows["candidate"].candidate_id
    await _start(db_session, assignment_id, actor)
    db_session.add(
        RecDocumentRequirement(step_key="MEDICAL_CERTIFICATE", doc_type="medical_report", label="Medical Report")
    )
    document = RecDocument(candidate_id=candidate_id, doc_type="medical_report", file_ref="docs/medical.pdf")
    db_session.add(document)
    await db_session.commit()
    document_id = document.document_id

    with pytest.raises(GateNotSatisfied) as exc_info:
        await processing.update_step_status(
            db_session,
            assignment_id=assignment_id,
            step_key="MEDICAL_CERTIFICATE",
            status="DONE",
            actor=actor,
            observer=observer,
        )
    assert exc_info.value.reasons == ["Document not verified: Medical Report"]
    assert observer.gate_failures == [(assignment_id, "MEDICAL_CERTIFICATE", 1)]

    evaluation = await gating.evaluate(db_session, assignment_id=assignment_id, step_key="MEDICAL_CERTIFICATE")
    assert evaluation.ready is False
    assert evaluation.total_required == 1

    verification = await processing.verify_document(
        db_session,
        assignment_id=assignment_id,
        document_id=document_id,
        step_key="MEDICAL_CERTIFICATE",
        actor=actor,
    )
    assert verification.is_processing_copy is True
    assert verification.status == "verified"
    assert verification.verified_by_name == "Priya Recruiter"

    step = await processing.update_step_status(
        db_session,
        assignment_id=assignment_id,
        step_key="MEDICAL_CERTIFICATE",
        status="DONE",
        actor=actor,
        observer=observer,
    )
    assert step.status == "DONE"
    assert step.completed_at is not None
    assert observer.step_changes[-1] == (assignment_id, "MEDICAL_CERTIFICATE", "IN_PROGRESS", "DONE")

    steps = await _steps_by_key(db_session, assignment_id)
    assert steps["DOCUMENT_COLLECTION"].status == "IN_PROGRESS"
    assert steps["DOCUMENT_COLLECTION"].due_date is not None


async def test_verify_document_is_idempotent_per_step(db_session, reference_rows, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    document = RecDocument(candidate_id=reference_rows["candidate"].candidate_id, doc_type="passport")
    db_session.add(document)
    await db_session.commit()
    document_id = document.document_id

    first = await processing.verify_document(
        db_session, assignment_id=assignment_id, document_id=document_id, step_key="VISA", actor=actor
    )
    first_id = first.document_verification_id
    with pytest.raises(AlreadyInProcessing) as exc_info:
        await processing.verify_document(
            db_session, assignment_id=assignment_id, document_id=document_id, step_key="VISA", actor=actor
        )
    assert exc_info.value.verification_id == first_id
    assert exc_info.value.status_code == 200

    # A different step gets its own copy.
    other = await processing.verify_document(
        db_session, assignment_id=assignment_id, document_id=document_id, step_key="IMMIGRATION", actor=actor
    )
    assert other.document_verification_id != first_id


async def test_verify_document_rejects_other_candidates_documents(db_session, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    stranger = RecCandidate(full_name="Someone Else", email="else@example.com")
    db_session.add(stranger)
    await db_session.flush()
    document = RecDocument(candidate_id=stranger.candidate_id, doc_type="passport")
    db_session.add(document)
    await db_session.commit()
    document_id = document.document_id

    with pytest.raises(InvalidRequest):
        await processing.verify_document(
            db_session, assignment_id=assignment_id, document_id=document_id, step_key="VISA", actor=actor
        )


async def test_not_applicable_only_where_allowed(db_session, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    await _start(db_session, assignment_id, actor)

    step = await processing.update_step_status(
        db_session,
        assignment_id=assignment_id,
        step_key="qvp",
        status="NOT_APPLICABLE",
        actor=actor,
        not_applicable_reason="Client waives QVP",
    )
    assert step.status == "NOT_APPLICABLE"
    assert step.not_applicable_reason == "Client waives QVP"

    with pytest.raises(InvalidTransition):
        await processing.update_step_status(
            db_session, assignment_id=assignment_id, step_key="VISA", status="NOT_APPLICABLE", actor=actor
        )


async def test_rejected_is_only_reachable_by_cancelling(db_session, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    await _start(db_session, assignment_id, actor)
    with pytest.raises(InvalidTransition):
        await processing.update_step_status(
            db_session, assignment_id=assignment_id, step_key="TRAVEL", status="REJECTED", actor=actor
        )
    with pytest.raises(InvalidRequest):
        await processing.update_step_status(
            db_session, assignment_id=assignment_id, step_key="TRAVEL", status="PAUSED", actor=actor
        )
    with pytest.raises(InvalidRequest):
        await processing.update_step_status(
            db_session, assignment_id=assignment_id, step_key="LAUNDRY", status="DONE", actor=actor
        )


async def test_cancelled_step_is_terminal(db_session, sample_assignment, actor, observer):
    assignment_id = sample_assignment.assignment_id
    await _start(db_session, assignment_id, actor)

    with pytest.raises(InvalidRequest):
        await processing.cancel_step(db_session, assignment_id=assignment_id, step_key="VISA", reason="  ", actor=actor)

    step = await processing.cancel_step(
        db_session,
        assignment_id=assignment_id,
        step_key="VISA",
        reason="Quota withdrawn by client",
        actor=actor,
        observer=observer,
    )
    assert step.status == "REJECTED"
    assert step.cancelled_at is not None
    assert step.rejection_reason == "Quota withdrawn by client"
    assert observer.step_changes == [(assignment_id, "VISA", "PENDING", "REJECTED")]

    with pytest.raises(TerminalState) as exc_info:
        await processing.update_step_status(
            db_session, assignment_id=assignment_id, step_key="VISA", status="IN_PROGRESS", actor=actor
        )
    assert "cancelled" in exc_info.value.message
    with pytest.raises(TerminalState):
        await processing.cancel_step(
            db_session, assignment_id=assignment_id, step_key="VISA", reason="again", actor=actor
        )

    history = await processing.list_processing_history(db_session, assignment_id)
    assert history[0].new_status == "REJECTED"
    assert history[0].notes == "Quota withdrawn by client"


async def test_completed_step_cannot_be_cancelled(db_session, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    await _start(db_session, assignment_id, actor)
    await processing.update_step_status(
        db_session, assignment_id=assignment_id, step_key="MEDICAL_CERTIFICATE", status="DONE", actor=actor
    )
    with pytest.raises(TerminalState) as exc_info:
        await processing.cancel_step(
            db_session, assignment_id=assignment_id, step_key="MEDICAL_CERTIFICATE", reason="late", actor=actor
        )
    assert "completed" in exc_info.value.message


async def test_submission_date_is_set_once_then_edited(db_session, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    await _start(db_session, assignment_id, actor)

    with pytest.raises(InvalidTransition):
        await processing.edit_submitted_date(
            db_session,
            assignment_id=assignment_id,
            step_key="VISA",
            submitted_at=datetime(2024, 6, 1),
            actor=actor,
        )
    with pytest.raises(InvalidTransition):
        await processing.submit_date(
            db_session,
            assignment_id=assignment_id,
            step_key="TRAVEL",
            submitted_at=datetime(2024, 6, 1),
            actor=actor,
        )

    step = await processing.submit_date(
        db_session, assignment_id=assignment_id, step_key="VISA", submitted_at=datetime(2024, 6, 1), actor=actor
    )
    assert step.submitted_at == datetime(2024, 6, 1)

    with pytest.raises(Conflict):
        await processing.submit_date(
            db_session, assignment_id=assignment_id, step_key="VISA", submitted_at=datetime(2024, 6, 2), actor=actor
        )

    edited = await processing.edit_submitted_date(
        db_session, assignment_id=assignment_id, step_key="VISA", submitted_at=datetime(2024, 6, 3), actor=actor
    )
    assert edited.submitted_at == datetime(2024, 6, 3)

    history = await processing.list_processing_history(db_session, assignment_id)
    assert history[0].notes == "Submission date changed from 2024-06-01 to 2024-06-03"
    assert history[1].notes == "Submission date set to 2024-06-01"


async def test_submission_step_needs_date_before_done(db_session, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    await _start(db_session, assignment_id, actor)

    with pytest.raises(GateNotSatisfied) as exc_info:
        await processing.update_step_status(
            db_session, assignment_id=assignment_id, step_key="HRD_ATTESTATION", status="DONE", actor=actor
        )
    assert exc_info.value.reasons == ["Submission date not recorded"]

    await processing.submit_date(
        db_session,
        assignment_id=assignment_id,
        step_key="HRD_ATTESTATION",
        submitted_at=datetime(2024, 6, 1),
        actor=actor,
    )
    step = await processing.update_step_status(
        db_session, assignment_id=assignment_id, step_key="HRD_ATTESTATION", status="DONE", actor=actor
    )
    assert step.status == "DONE"


async def test_all_steps_complete_moves_assignment(db_session, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    await _start(db_session, assignment_id, actor)

    for key in PROCESSING_STEP_ORDER:
        if key == "PROMETRIC":
            await processing.update_step_status(
                db_session, assignment_id=assignment_id, step_key=key, status="NOT_APPLICABLE", actor=actor
            )
            continue
        if requires_submission_date(key):
            await processing.submit_date(
                db_session, assignment_id=assignment_id, step_key=key, submitted_at=datetime(2024, 6, 1), actor=actor
            )
        await processing.update_step_status(
            db_session, assignment_id=assignment_id, step_key=key, status="DONE", actor=actor
        )

    out = await get_assignment_out(db_session, assignment_id)
    assert out.main_status == "processing"
    assert out.sub_status == "processing_completed"

    detail = await processing.get_processing_detail(db_session, assignment_id)
    assert detail.completed_count == 11
    assert detail.progress_percent == 100
    assert detail.current_step_key is None
    assert detail.steps[5].not_applicable_reason == "Marked as not applicable"


async def test_rejected_verification_reopens_the_gate(db_session, reference_rows, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    await _start(db_session, assignment_id, actor)
    db_session.add(
        RecDocumentRequirement(step_key="MEDICAL_CERTIFICATE", doc_type="medical_report", label="Medical Report")
    )
    document = RecDocument(
        candidate_id=reference_rows["candidate"].candidate_id,
        doc_type="medical_report",
        file_ref="docs/medical.pdf",
    )
    db_session.add(document)
    await db_session.commit()
    document_id = document.document_id

    verification = await processing.verify_document(
        db_session,
        assignment_id=assignment_id,
        document_id=document_id,
        step_key="MEDICAL_CERTIFICATE",
        actor=actor,
    )
    verification_id = verification.document_verification_id
    ready = await gating.evaluate(db_session, assignment_id=assignment_id, step_key="MEDICAL_CERTIFICATE")
    assert ready.ready is True

    rejected = await processing.reject_verification(
        db_session,
        assignment_id=assignment_id,
        verification_id=verification_id,
        reason="Report is unsigned",
        actor=actor,
    )
    assert rejected.status == "rejected"
    assert rejected.notes == "Report is unsigned"
    assert rejected.verified_by_person_id == "DK_0498"
    assert rejected.verified_at is None

    evaluation = await gating.evaluate(db_session, assignment_id=assignment_id, step_key="MEDICAL_CERTIFICATE")
    assert evaluation.ready is False
    assert evaluation.missing_labels == ["Medical Report"]

    with pytest.raises(Conflict):
        await processing.reject_verification(
            db_session,
            assignment_id=assignment_id,
            verification_id=verification_id,
            reason="Still unsigned",
            actor=actor,
        )

    # Verifying again reuses the rejected copy.
    again = await processing.verify_document(
        db_session,
        assignment_id=assignment_id,
        document_id=document_id,
        step_key="MEDICAL_CERTIFICATE",
        actor=actor,
        notes="Signed copy uploaded",
    )
    assert again.document_verification_id == verification_id
    assert again.status == "verified"
    reopened = await gating.evaluate(db_session, assignment_id=assignment_id, step_key="MEDICAL_CERTIFICATE")
    assert reopened.ready is True


async def test_reject_verification_checks_reason_and_assignment(db_session, reference_rows, sample_assignment, actor):
    assignment_id = sample_assignment.assignment_id
    document = RecDocument(candidate_id=reference_rows["candidate"].candidate_id, doc_type="passport")
    db_session.add(document)
    await db_session.commit()
    verification = await processing.verify_document(
        db_session, assignment_id=assignment_id, document_id=document.document_id, step_key="VISA", actor=actor
    )
    verification_id = verification.document_verification_id

    with pytest.raises(InvalidRequest):
        await processing.reject_verification(
            db_session, assignment_id=assignment_id, verification_id=verification_id, reason="  ", actor=actor
        )
    with pytest.raises(NotFound):
        await processing.reject_verification(
            db_session, assignment_id=assignment_id + 1, verification_id=verification_id, reason="Expired", actor=actor
        )
