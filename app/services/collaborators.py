"""
Contracts for the systems around the pipeline, with the defaults used in this service.

Documents and identities are read from the local tables; notifications go out on the event bus.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.document import RecDocument
from app.models.document_verification import RecDocumentVerification
from app.models.platform_person import DimPerson
from app.schemas.user import ActorContext
from app.services.event_bus import EventBus, event_bus

logger = logging.getLogger("sp.notifications")


@dataclass(frozen=True)
class DocumentInfo:
    document_id: int
    candidate_id: int
    doc_type: str
    status: str
    file_ref: str | None


class DocumentStore(Protocol):
    async def get_document(self, document_id: int) -> DocumentInfo | None: ...

    async def create_verification(
        self,
        *,
        assignment_id: int,
        document: DocumentInfo,
        step_key: str | None,
        is_processing_copy: bool,
        status: str,
        actor: ActorContext,
        notes: str | None,
        verified_at: datetime | None,
    ) -> RecDocumentVerification: ...


class NotificationSink(Protocol):
    async def notify(
        self,
        recipient_id: str,
        title: str,
        body: str,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...


class IdentityLookup(Protocol):
    async def get_name(self, actor_id: str | None) -> str | None: ...


class SqlDocumentStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_document(self, document_id: int) -> DocumentInfo | None:
        row = await self._session.get(RecDocument, document_id)
        if not row:
            return None
        return DocumentInfo(
            document_id=row.document_id,
            candidate_id=row.candidate_id,
            doc_type=row.doc_type,
            status=row.status,
            file_ref=row.file_ref,
        )

    async def create_verification(
        self,
        *,
        assignment_id: int,
        document: DocumentInfo,
        step_key: str | None,
        is_processing_copy: bool,
        status: str,
        actor: ActorContext,
        notes: str | None,
        verified_at: datetime | None,
    ) -> RecDocumentVerification:
        verification = RecDocumentVerification(
            assignment_id=assignment_id,
            document_id=document.document_id,
            doc_type=document.doc_type,
            step_key=step_key,
            is_processing_copy=is_processing_copy,
            status=status,
            verified_by_person_id=actor.person_id,
            verified_by_name=actor.name,
            notes=notes,
            verified_at=verified_at,
        )
        self._session.add(verification)
        await self._session.flush()
        return verification


class SqlIdentityLookup:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_name(self, actor_id: str | None) -> str | None:
        if not actor_id:
            return None
        person = (
            await self._session.execute(select(DimPerson).where(DimPerson.person_id == actor_id).limit(1))
        ).scalars().first()
        if not person:
            return None
        if person.display_name:
            return person.display_name
        if person.full_name:
            return person.full_name
        parts = [part for part in (person.first_name, person.last_name) if part]
        return " ".join(parts) or None


class EventBusNotificationSink:
    def __init__(self, bus: EventBus | None = None) -> None:
        self._bus = bus or event_bus

    async def notify(
        self,
        recipient_id: str,
        title: str,
        body: str,
        link: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self._bus.publish(
            {
                "type": "notification",
                "recipient_id": recipient_id,
                "title": title,
                "body": body,
                "link": link,
                "metadata": metadata or {},
            }
        )


default_notification_sink: NotificationSink = EventBusNotificationSink()


async def resolve_actor(session: AsyncSession, actor: ActorContext, identity: IdentityLookup | None = None) -> ActorContext:
    """Fill in the actor's display name for history snapshots; unknown actors keep a null name."""
    if actor.name or not actor.person_id:
        return actor
    lookup = identity or SqlIdentityLookup(session)
    name = await lookup.get_name(actor.person_id)
    return ActorContext(person_id=actor.person_id, name=name)


async def notify_quietly(
    sink: NotificationSink,
    recipient_id: str | None,
    *,
    title: str,
    body: str,
    link: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> bool:
    """Deliver after commit; a failed delivery is logged and never undoes the committed change."""
    if not recipient_id:
        return False
    try:
        await sink.notify(recipient_id, title, body, link, metadata)
    except Exception:
        logger.exception("notification_failed", extra={"recipient_id": recipient_id, "title": title})
        return False
    return True
