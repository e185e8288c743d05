from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from salesdocs.core.config import Settings, get_settings
from salesdocs.core.enums import DocumentType, FormPayloadSource
from salesdocs.core.errors import NotFound
from salesdocs.models.base import utcnow
from salesdocs.models.draft_record import DraftRecord
from salesdocs.models.project import Project
from salesdocs.services.audit import audit_log
from salesdocs.services.documents import MULTI_ACTIVE_TYPES, load_current, snapshot_payload


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormPayload:
    source: FormPayloadSource
    payload: dict[str, Any] | None


async def _has_active_record(session: AsyncSession, *, project_id: uuid.UUID, doc_type: DocumentType) -> bool:
    if doc_type in MULTI_ACTIVE_TYPES:
        return False
    return await load_current(session, project_id=project_id, doc_type=doc_type) is not None


async def save_draft(
    session: AsyncSession,
    *,
    actor: str,
    project_id: uuid.UUID,
    doc_type: DocumentType,
    payload: dict[str, Any],
) -> DraftRecord | None:
    """Upsert the draft for (project, type). Returns None without writing when the document is already final."""
    snapshot = snapshot_payload(payload)
    if await session.get(Project, project_id) is None:
        raise NotFound(f"Project not found: {project_id}")

    if await _has_active_record(session, project_id=project_id, doc_type=doc_type):
        logger.info(
            "Skipping draft save, document already finalized",
            extra={"project_id": str(project_id), "doc_type": doc_type.value},
        )
        return None

    draft = await session.get(DraftRecord, (project_id, doc_type))
    if draft is None:
        draft = DraftRecord(project_id=project_id, doc_type=doc_type, payload=snapshot, updated_at=utcnow())
        session.add(draft)
    else:
        draft.payload = snapshot
        draft.updated_at = utcnow()
    await session.flush()

    await audit_log(
        session,
        actor=actor,
        entity_type="draft",
        entity_id=project_id,
        action="save",
        after={"doc_type": doc_type, "updated_at": draft.updated_at},
    )
    return draft


async def load_draft(
    session: AsyncSession,
    *,
    project_id: uuid.UUID,
    doc_type: DocumentType,
) -> dict[str, Any] | None:
    if await _has_active_record(session, project_id=project_id, doc_type=doc_type):
        return None
    draft = await session.get(DraftRecord, (project_id, doc_type))
    return draft.payload if draft is not None else None


async def load_form_payload(
    session: AsyncSession,
    *,
    project_id: uuid.UUID,
    doc_type: DocumentType,
) -> FormPayload:
    current = await load_current(session, project_id=project_id, doc_type=doc_type)
    if current is not None and doc_type not in MULTI_ACTIVE_TYPES:
        return FormPayload(source=FormPayloadSource.FINAL, payload=current.payload_snapshot)

    draft = await session.get(DraftRecord, (project_id, doc_type))
    if draft is not None:
        return FormPayload(source=FormPayloadSource.DRAFT, payload=draft.payload)
    return FormPayload(source=FormPayloadSource.EMPTY, payload=None)


class AutosaveDebouncer:
    """
    Coalesces rapid form edits into one draft save after a quiet period.

    `schedule()` replaces the pending payload and restarts the timer; the save runs in
    its own session. Failed saves are logged and dropped, the next edit retries.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        project_id: uuid.UUID,
        doc_type: DocumentType,
        actor: str,
        delay_seconds: float = 1.5,
    ) -> None:
        self._session_factory = session_factory
        self.actor = actor
        self.project_id = project_id
        self.doc_type = doc_type
        self.delay_seconds = delay_seconds
        self._pending: dict[str, Any] | None = None
        self._timer: asyncio.Task[None] | None = None
        # Held for the whole save; at most one save per debouncer is in flight.
        self._save_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        project_id: uuid.UUID,
        doc_type: DocumentType,
        actor: str,
        settings: Settings | None = None,
    ) -> AutosaveDebouncer:
        settings = settings or get_settings()
        return cls(
            session_factory,
            project_id=project_id,
            doc_type=doc_type,
            actor=actor,
            delay_seconds=settings.autosave_debounce_seconds,
        )

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self, payload: dict[str, Any]) -> None:
        self._pending = payload
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.create_task(self._save_after_delay())

    async def _save_after_delay(self) -> None:
        await asyncio.sleep(self.delay_seconds)
        # A save that already started is not interrupted by a later schedule().
        await asyncio.shield(self.flush())

    async def flush(self) -> bool:
        async with self._save_lock:
            payload, self._pending = self._pending, None
            if payload is None:
                return False
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        draft = await save_draft(
                            session,
                            actor=self.actor,
                            project_id=self.project_id,
                            doc_type=self.doc_type,
                            payload=payload,
                        )
            except Exception:
                logger.exception(
                    "Draft autosave failed",
                    extra={"project_id": str(self.project_id), "doc_type": self.doc_type.value},
                )
                return False
            return draft is not None

    async def close(self) -> None:
        """Cancel the timer, wait for a save already in flight and save whatever is still pending."""
        if self._timer is not None:
            self._timer.cancel()
            with suppress(asyncio.CancelledError):
                await self._timer
            self._timer = None
        await self.flush()
