from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

_DEPTH_KEY = "sp_transaction_depth"
_AFTER_COMMIT_KEY = "sp_after_commit"


async def get_session() -> AsyncSession:
    async with SessionLocal() as session:
        yield session


def after_commit(session: AsyncSession, callback: Callable[[], None]) -> None:
    """Runs `callback` once the outermost `transaction()` on this session commits, or now if none is open."""
    if session.info.get(_DEPTH_KEY, 0):
        session.info.setdefault(_AFTER_COMMIT_KEY, []).append(callback)
        return
    callback()


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Runs the enclosed writes as one unit.

    The outermost call owns the unit and commits or rolls it back, even when the session has
    already autobegun from an earlier read. Nested calls only flush into the owner's unit.
    """
    depth = session.info.get(_DEPTH_KEY, 0)
    if depth:
        session.info[_DEPTH_KEY] = depth + 1
        try:
            yield session
            await session.flush()
        finally:
            session.info[_DEPTH_KEY] = depth
        return

    session.info[_DEPTH_KEY] = 1
    try:
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise
    except BaseException:
        session.info.pop(_AFTER_COMMIT_KEY, None)
        raise
    finally:
        session.info.pop(_DEPTH_KEY, None)

    for callback in session.info.pop(_AFTER_COMMIT_KEY, []):
        callback()
