from datetime import datetime, timedelta

from app.core.datetime_utils import now_local_naive
from app.jobs.tasks import run_overdue_step_sweep, run_submission_followups
from app.services import processing

from conftest import RecordingNotifier


async def _start_with_visa_submission(db_session, assignment_id, actor):
    await processing.ensure_processing_steps(db_session, assignment_id=assignment_id, actor=actor)
    await processing.submit_date(
        db_session,
        assignment_id=assignment_id,
        step_key="VISA",
        submitted_at=datetime(2024, 6, 1, 9, 0),
        actor=actor,
    )


async def test_overdue_sweep_reminds_recruiter(db_session, session_factory, sample_assignment, actor, notifier):
    assignment_id = sample_assignment.assignment_id
    await processing.ensure_processing_steps(db_session, assignment_id=assignment_id, actor=actor)

    assert await run_overdue_step_sweep(session_factory=session_factory, notifier=notifier) == 0
    assert notifier.sent == []

    sent = await run_overdue_step_sweep(
        session_factory=session_factory,
        notifier=notifier,
        now=now_local_naive() + timedelta(days=8),
    )
    assert sent == 1
    message = notifier.sent[0]
    assert message["recipient_id"] == "DK_0498"
    assert message["title"] == "Medical Certificate overdue"
    assert message["link"] == f"/processing/{assignment_id}"
    assert message["metadata"] == {"assignment_id": assignment_id, "step_key": "MEDICAL_CERTIFICATE", "kind": "overdue"}


async def test_submission_followups(db_session, session_factory, sample_assignment, actor, notifier):
    await _start_with_visa_submission(db_session, sample_assignment.assignment_id, actor)

    early = await run_submission_followups(
        session_factory=session_factory, notifier=notifier, now=datetime(2024, 6, 5, 9, 0)
    )
    assert early == 0

    sent = await run_submission_followups(
        session_factory=session_factory, notifier=notifier, now=datetime(2024, 6, 10, 9, 0)
    )
    assert sent == 1
    assert notifier.sent[0]["title"] == "Visa follow-up"
    assert notifier.sent[0]["metadata"]["kind"] == "submission_followup"


async def test_failed_delivery_is_not_counted(db_session, session_factory, sample_assignment, actor):
    await _start_with_visa_submission(db_session, sample_assignment.assignment_id, actor)
    failing = RecordingNotifier(fail=True)
    sent = await run_submission_followups(
        session_factory=session_factory, notifier=failing, now=datetime(2024, 6, 10, 9, 0)
    )
    assert sent == 0
