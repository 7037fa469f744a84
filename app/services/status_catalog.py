from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidRequest, UnknownStatus
from app.core.statuses import (
    MAIN_STATUS_CATALOG,
    SUB_STATUS_CATALOG,
    MainStatus,
    SubStatus,
    parse_sub_status,
)
from app.models.status import RecStatusMain, RecStatusSub


def _key(value: MainStatus | SubStatus | str) -> str:
    return value.value if isinstance(value, (MainStatus, SubStatus)) else str(value)


async def resolve_main_status(session: AsyncSession, key: MainStatus | str) -> RecStatusMain:
    name = _key(key)
    row = (
        await session.execute(select(RecStatusMain).where(RecStatusMain.name == name).limit(1))
    ).scalars().first()
    if not row:
        raise UnknownStatus("main", name)
    return row


async def resolve_sub_status(session: AsyncSession, key: SubStatus | str) -> RecStatusSub:
    name = _key(key)
    row = (
        await session.execute(select(RecStatusSub).where(RecStatusSub.name == name).limit(1))
    ).scalars().first()
    if not row:
        raise UnknownStatus("sub", name)
    return row


async def resolve_caller_sub_status(session: AsyncSession, raw: str | None) -> RecStatusSub:
    """Resolve a sub-status named in a request; anything unresolvable is the caller's mistake."""
    sub_status = parse_sub_status(raw)
    if sub_status is None:
        raise InvalidRequest(f"Unknown sub-status '{raw}'")
    try:
        return await resolve_sub_status(session, sub_status)
    except UnknownStatus as exc:
        raise InvalidRequest(f"Unknown sub-status '{raw}'") from exc


async def get_main_status_by_id(session: AsyncSession, status_main_id: int) -> RecStatusMain:
    row = await session.get(RecStatusMain, status_main_id)
    if not row:
        raise UnknownStatus("main", str(status_main_id))
    return row


async def get_sub_status_by_id(session: AsyncSession, status_sub_id: int) -> RecStatusSub:
    row = await session.get(RecStatusSub, status_sub_id)
    if not row:
        raise UnknownStatus("sub", str(status_sub_id))
    return row


async def seed_status_catalog(session: AsyncSession) -> None:
    """Insert missing catalog rows and refresh labels/order on existing ones."""
    existing_main = {
        row.name: row for row in (await session.execute(select(RecStatusMain))).scalars().all()
    }
    for main_status, (label, sort_order) in MAIN_STATUS_CATALOG.items():
        row = existing_main.get(main_status.value)
        if row is None:
            row = RecStatusMain(name=main_status.value, label=label, sort_order=sort_order)
            session.add(row)
            existing_main[main_status.value] = row
        else:
            row.label = label
            row.sort_order = sort_order
    await session.flush()

    existing_sub = {
        row.name: row for row in (await session.execute(select(RecStatusSub))).scalars().all()
    }
    for sub_status, (main_status, label, sort_order) in SUB_STATUS_CATALOG.items():
        main_row = existing_main[main_status.value]
        row = existing_sub.get(sub_status.value)
        if row is None:
            session.add(
                RecStatusSub(
                    name=sub_status.value,
                    status_main_id=main_row.status_main_id,
                    label=label,
                    sort_order=sort_order,
                )
            )
        else:
            row.status_main_id = main_row.status_main_id
            row.label = label
            row.sort_order = sort_order
    await session.flush()
