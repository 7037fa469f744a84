import os

os.environ.setdefault("SP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SP_REDIS_URL", "")
os.environ.setdefault("SP_ENABLE_SCHEDULER", "false")

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.models import Base, DimPerson, RecCandidate, RecProject, RecProjectRole
from app.schemas.user import ActorContext
from app.services.assignment_transitions import nominate
from app.services.status_catalog import seed_status_catalog


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict] = []

    async def notify(self, recipient_id, title, body, link=None, metadata=None) -> None:
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append(
            {"recipient_id": recipient_id, "title": title, "body": body, "link": link, "metadata": metadata or {}}
        )


class RecordingObserver:
    def __init__(self) -> None:
        self.transitions: list[tuple] = []
        self.step_changes: list[tuple] = []
        self.gate_failures: list[tuple] = []
        self.bulk_failures: list[tuple] = []

    def after_transition(self, *, assignment_id, previous_sub_status, new_sub_status, actor) -> None:
        self.transitions.append((assignment_id, previous_sub_status, new_sub_status))

    def after_step_change(self, *, assignment_id, step_key, previous_status, new_status, actor) -> None:
        self.step_changes.append((assignment_id, step_key, previous_status, new_status))

    def after_gate_failure(self, *, assignment_id, step_key, evaluation) -> None:
        self.gate_failures.append((assignment_id, step_key, evaluation.missing_count))

    def after_bulk_item_failure(self, *, operation, index, error, code) -> None:
        self.bulk_failures.append((operation, index, code))


@pytest.fixture()
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        async with session.begin():
            await seed_status_catalog(session)
        yield session
        await session.rollback()


@pytest.fixture()
def actor():
    return ActorContext(person_id="DK_0498", name="Priya Recruiter")


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def observer():
    return RecordingObserver()


@pytest.fixture()
async def reference_rows(db_session):
    candidate = RecCandidate(full_name="Arjun Menon", email="arjun.menon@example.com", phone="+91 90000 00001")
    project = RecProject(title="Riyadh Metro Nursing", client_name="Gulf Health", country_code="SA")
    db_session.add_all([candidate, project])
    await db_session.flush()
    role = RecProjectRole(project_id=project.project_id, designation="Staff Nurse", headcount=10)
    recruiter = DimPerson(person_id="DK_0498", email="priya@example.com", first_name="Priya", last_name="Recruiter")
    db_session.add_all([role, recruiter])
    await db_session.commit()
    return {"candidate": candidate, "project": project, "role": role, "recruiter": recruiter}


@pytest.fixture()
async def sample_assignment(db_session, reference_rows, actor):
    return await nominate(
        db_session,
        candidate_id=reference_rows["candidate"].candidate_id,
        project_id=reference_rows["project"].project_id,
        role_id=reference_rows["role"].role_id,
        recruiter_person_id="DK_0498",
        actor=actor,
    )
