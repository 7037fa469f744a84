from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import StreamingResponse

from app.api import deps
from app.schemas.dashboard import InterviewDashboardOut
from app.services import interviews
from app.services.event_bus import event_bus

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

SSE_PING_SECONDS = 15
SSE_RETRY_MS = 5000


@router.get("/interviews", response_model=InterviewDashboardOut)
async def get_interview_metrics(session: AsyncSession = Depends(deps.get_db_session)):
    return await interviews.dashboard_metrics(session)


@router.get("/events/stream")
async def stream_events(request: Request, recipient_id: Optional[str] = Query(default=None)):
    queue = await event_bus.subscribe(recipient_id=recipient_id)

    async def pipeline_events():
        yield f"retry: {SSE_RETRY_MS}\n\n"
        try:
            while not await request.is_disconnected():
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=SSE_PING_SECONDS)
                except asyncio.TimeoutError:
                    yield "event: ping\ndata: {}\n\n"
                    continue
                yield f"event: pipeline\ndata: {data}\n\n"
        finally:
            await event_bus.unsubscribe(queue)

    return StreamingResponse(
        pipeline_events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
