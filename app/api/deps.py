from typing import Optional

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.session import SessionLocal, get_session
from app.schemas.user import ActorContext


async def get_db_session() -> AsyncSession:
    async for session in get_session():
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return SessionLocal


async def get_actor(
    x_actor_id: Optional[str] = Header(default=None),
    x_actor_name: Optional[str] = Header(default=None),
) -> ActorContext:
    # Identity is asserted by the upstream gateway; no permission checks happen here.
    return ActorContext(
        person_id=(x_actor_id or "").strip() or None,
        name=(x_actor_name or "").strip() or None,
    )
