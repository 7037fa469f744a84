from datetime import datetime

import pytest
from sqlalchemy import func, select

from app.models import RecInterview
from app.services import interviews
from app.services.bulk import run_each


def _items(assignment_id, bad_position):
    items = [
        {"assignment_id": assignment_id, "scheduled_time": datetime(2030, 3, 1, hour, 0).isoformat()}
        for hour in (9, 11, 13)
    ]
    items[bad_position] = {"assignment_id": assignment_id, "duration_minutes": 45}
    return items


@pytest.mark.parametrize("bad_position", [0, 1, 2])
async def test_invalid_item_does_not_stop_the_batch(
    session_factory, sample_assignment, actor, notifier, observer, bad_position
):
    results = await interviews.create_bulk(
        _items(sample_assignment.assignment_id, bad_position),
        actor=actor,
        session_factory=session_factory,
        notifier=notifier,
        observer=observer,
    )

    assert [result.index for result in results] == [0, 1, 2]
    assert [result.success for result in results] == [position != bad_position for position in range(3)]

    failed = results[bad_position]
    assert failed.code == "validation_error"
    assert failed.error == "Validation failed"
    assert any(error["loc"] == ["scheduled_time"] for error in failed.details)
    assert observer.bulk_failures == [("interviews.create_bulk", bad_position, "validation_error")]

    async with session_factory() as session:
        count = (
            await session.execute(
                select(func.count())
                .select_from(RecInterview)
                .where(RecInterview.assignment_id == sample_assignment.assignment_id)
            )
        ).scalar_one()
        assert count == 2
        await session.rollback()
    assert len(notifier.sent) == 2


async def test_conflicting_item_reports_its_code(session_factory, sample_assignment, actor, notifier):
    slot = {"assignment_id": sample_assignment.assignment_id, "scheduled_time": "2030-03-01T09:00:00"}
    results = await interviews.create_bulk(
        [slot, dict(slot)],
        actor=actor,
        session_factory=session_factory,
        notifier=notifier,
    )
    assert results[0].success is True
    assert results[0].data.scheduled_time == datetime(2030, 3, 1, 9, 0)
    assert results[1].success is False
    assert results[1].code == "slot_conflict"
    assert results[1].error == "Interview already scheduled for this time slot"


async def test_outcome_bulk(session_factory, db_session, sample_assignment, actor, notifier, observer):
    interview = await interviews.schedule(
        db_session,
        assignment_id=sample_assignment.assignment_id,
        scheduled_time=datetime(2030, 3, 2, 10, 0),
        actor=actor,
        notifier=notifier,
    )
    interview_id = interview.interview_id

    results = await interviews.update_outcome_bulk(
        [
            {"interview_id": interview_id, "outcome": "passed", "sub_status": "interview_passed"},
            {"interview_id": 999, "outcome": "failed"},
            {"interview_id": interview_id, "outcome": "maybe"},
        ],
        actor=actor,
        session_factory=session_factory,
        observer=observer,
    )
    assert results[0].success is True
    assert results[0].data.outcome == "passed"
    assert results[1].code == "not_found"
    assert results[2].code == "validation_error"
    assert [failure[1] for failure in observer.bulk_failures] == [1, 2]


async def test_unexpected_errors_are_reported_per_item(session_factory, observer):
    async def flaky(session, item):
        if item == "boom":
            raise RuntimeError("disk full")
        return item.upper()

    results = await run_each(
        ["ok", "boom", "fine"],
        flaky,
        session_factory=session_factory,
        operation="test.flaky",
        observer=observer,
    )
    assert [result.data for result in results] == ["OK", None, "FINE"]
    assert results[1].code == "internal_error"
    assert results[1].error == "disk full"
    assert observer.bulk_failures == [("test.flaky", 1, "internal_error")]


async def test_empty_batch(session_factory):
    assert await run_each([], lambda session, item: item, session_factory=session_factory) == []
