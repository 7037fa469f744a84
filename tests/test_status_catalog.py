import pytest
from sqlalchemy import func, select

from app.core.errors import InvalidRequest, UnknownStatus
from app.core.statuses import SUB_STATUS_CATALOG, MainStatus, SubStatus
from app.models import RecStatusMain, RecStatusSub
from app.services.status_catalog import (
    resolve_caller_sub_status,
    resolve_main_status,
    resolve_sub_status,
    seed_status_catalog,
)


async def _count(session, model):
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def test_seed_is_idempotent(db_session):
    before = await _count(db_session, RecStatusSub)
    assert before == len(SUB_STATUS_CATALOG)

    await seed_status_catalog(db_session)
    assert await _count(db_session, RecStatusSub) == before
    assert await _count(db_session, RecStatusMain) == len(MainStatus)


async def test_seed_restores_labels(db_session):
    row = await resolve_sub_status(db_session, SubStatus.DOCUMENTS_VERIFIED)
    row.label = "Docs OK"
    await db_session.flush()

    await seed_status_catalog(db_session)
    refreshed = await resolve_sub_status(db_session, "documents_verified")
    assert refreshed.label == "Verified Documents"


async def test_sub_status_rows_point_at_their_main_status(db_session):
    interview = await resolve_main_status(db_session, MainStatus.INTERVIEW)
    scheduled = await resolve_sub_status(db_session, SubStatus.INTERVIEW_SCHEDULED)
    assert scheduled.status_main_id == interview.status_main_id


async def test_missing_rows_are_configuration_errors(db_session):
    await db_session.execute(RecStatusSub.__table__.delete().where(RecStatusSub.name == "hired"))

    with pytest.raises(UnknownStatus) as exc_info:
        await resolve_sub_status(db_session, SubStatus.HIRED)
    assert exc_info.value.status_code == 500

    # The same gap reached through caller input is the caller's problem.
    with pytest.raises(InvalidRequest):
        await resolve_caller_sub_status(db_session, "hired")
    with pytest.raises(InvalidRequest):
        await resolve_caller_sub_status(db_session, "not-a-status")
