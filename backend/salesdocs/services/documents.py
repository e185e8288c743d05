from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from salesdocs.core.enums import DocumentState, DocumentType, NumberSeries
from salesdocs.core.errors import IllegalStateTransition, NotFound, PersistenceFailure, ValidationFailure
from salesdocs.models.base import utcnow
from salesdocs.models.document_record import DocumentRecord
from salesdocs.models.draft_record import DraftRecord
from salesdocs.models.project import Project
from salesdocs.services.artifacts import render_document_pdf
from salesdocs.services.audit import audit_log, document_summary
from salesdocs.services.numbering import SequenceAllocator, series_for


logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[DocumentState, set[DocumentState]] = {
    DocumentState.DRAFT: {DocumentState.FINAL},
    DocumentState.FINAL: {DocumentState.SUPERSEDED, DocumentState.REVERSED},
    DocumentState.SUPERSEDED: set(),
    DocumentState.REVERSED: set(),
}

# Which document types may take which exit out of FINAL.
VERSIONED_TYPES: frozenset[DocumentType] = frozenset({DocumentType.DELIVERY_NOTE})
REVERSIBLE_TYPES: frozenset[DocumentType] = frozenset({DocumentType.INVOICE})
# Types that may have several active records per project.
MULTI_ACTIVE_TYPES: frozenset[DocumentType] = frozenset({DocumentType.PROFORMA_INVOICE})

# Numeric payload fields that keep their sign on a reversal (rates, unit prices, identifiers).
UNSIGNED_PAYLOAD_KEYS: frozenset[str] = frozenset(
    {
        "unit_price",
        "price",
        "tax_rate",
        "tax_rate_bp",
        "vat_rate",
        "discount_percent",
        "version",
        "position",
        "year",
        "season_year",
        "postal_code",
    }
)


def check_transition(
    doc_type: DocumentType,
    current: DocumentState,
    target: DocumentState,
    *,
    is_reversal: bool = False,
) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise IllegalStateTransition(f"Invalid document transition: {current} -> {target}")
    if target == DocumentState.SUPERSEDED and doc_type not in VERSIONED_TYPES:
        raise IllegalStateTransition(f"{doc_type} documents cannot be revised")
    if target == DocumentState.REVERSED and (doc_type not in REVERSIBLE_TYPES or is_reversal):
        raise IllegalStateTransition(f"{doc_type} documents cannot be reversed")


@dataclass(frozen=True)
class DocumentView:
    record: DocumentRecord
    state: DocumentState
    superseded_by_id: uuid.UUID | None = None
    reversed_by_id: uuid.UUID | None = None

    @property
    def is_current(self) -> bool:
        return self.state == DocumentState.FINAL and not self.record.is_reversal


@dataclass(frozen=True)
class ReversalResult:
    reversal_record: DocumentRecord
    updated_original: DocumentRecord


def snapshot_payload(payload: Any) -> dict[str, Any]:
    """Deep, JSON-only copy of the form data; later edits to the caller's dict cannot leak into it."""
    if not isinstance(payload, dict):
        raise ValidationFailure("Document payload must be an object")
    try:
        return json.loads(json.dumps(payload))
    except (TypeError, ValueError) as e:
        raise ValidationFailure(f"Document payload is not JSON serializable: {e}") from e


def negate_amounts(value: Any, key: str | None = None) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value if key in UNSIGNED_PAYLOAD_KEYS else -value
    if isinstance(value, dict):
        return {k: negate_amounts(v, k) for k, v in value.items()}
    if isinstance(value, list):
        return [negate_amounts(v, key) for v in value]
    return value


def build_reversal_payload(original: DocumentRecord, *, reason: str, reversed_on: date) -> dict[str, Any]:
    payload = negate_amounts(original.payload_snapshot)
    payload.update(
        {
            "void": True,
            "reversal_of_number": original.document_number,
            "reversal_of_id": str(original.id),
            "reversal_reason": reason,
            "reversed_on": reversed_on.isoformat(),
        }
    )
    return payload


def _active_records_stmt(*, project_id: uuid.UUID, doc_type: DocumentType):
    successor = aliased(DocumentRecord)
    has_successor = select(successor.id).where(successor.supersedes_id == DocumentRecord.id).exists()
    return select(DocumentRecord).where(
        DocumentRecord.project_id == project_id,
        DocumentRecord.doc_type == doc_type,
        DocumentRecord.lifecycle_state == DocumentState.FINAL,
        DocumentRecord.reversal_of_id.is_(None),
        ~has_successor,
    )


async def _get_project(session: AsyncSession, project_id: uuid.UUID, *, for_update: bool = False) -> Project:
    # The project row serializes finalize, revise and reverse calls for the same project.
    project = await session.get(Project, project_id, with_for_update=for_update or None)
    if project is None:
        raise NotFound(f"Project not found: {project_id}")
    return project


async def load_record(session: AsyncSession, record_id: uuid.UUID) -> DocumentRecord:
    record = await session.get(DocumentRecord, record_id)
    if record is None:
        raise NotFound(f"Document not found: {record_id}")
    return record


async def load_current(
    session: AsyncSession,
    *,
    project_id: uuid.UUID,
    doc_type: DocumentType,
) -> DocumentRecord | None:
    stmt = _active_records_stmt(project_id=project_id, doc_type=doc_type).order_by(
        DocumentRecord.created_at.desc(), DocumentRecord.version.desc()
    )
    return (await session.execute(stmt.limit(1))).scalars().first()


async def list_active(session: AsyncSession, *, project_id: uuid.UUID, doc_type: DocumentType) -> list[DocumentRecord]:
    stmt = _active_records_stmt(project_id=project_id, doc_type=doc_type).order_by(DocumentRecord.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


async def _ensure_single_active(session: AsyncSession, *, project_id: uuid.UUID, doc_type: DocumentType) -> None:
    """Re-check after flushing; backends without row locks (SQLite) only serialize at write time."""
    if doc_type in MULTI_ACTIVE_TYPES:
        return
    active = await list_active(session, project_id=project_id, doc_type=doc_type)
    if len(active) > 1:
        numbers = ", ".join(r.document_number for r in active)
        raise IllegalStateTransition(f"Project already has an active {doc_type} ({numbers})")


async def effective_state(session: AsyncSession, record: DocumentRecord) -> DocumentState:
    if record.lifecycle_state == DocumentState.REVERSED:
        return DocumentState.REVERSED
    successor_id = await session.scalar(
        select(DocumentRecord.id).where(DocumentRecord.supersedes_id == record.id).limit(1)
    )
    if successor_id is not None:
        return DocumentState.SUPERSEDED
    return DocumentState.FINAL


async def list_history(
    session: AsyncSession,
    *,
    project_id: uuid.UUID,
    doc_type: DocumentType | None = None,
) -> list[DocumentView]:
    stmt = select(DocumentRecord).where(DocumentRecord.project_id == project_id)
    if doc_type is not None:
        stmt = stmt.where(DocumentRecord.doc_type == doc_type)
    records = (
        await session.execute(stmt.order_by(DocumentRecord.created_at.desc(), DocumentRecord.version.desc()))
    ).scalars().all()

    superseded_by = {r.supersedes_id: r.id for r in records if r.supersedes_id is not None}
    reversed_by = {r.reversal_of_id: r.id for r in records if r.reversal_of_id is not None}

    views: list[DocumentView] = []
    for r in records:
        if r.lifecycle_state == DocumentState.REVERSED:
            state = DocumentState.REVERSED
        elif r.id in superseded_by:
            state = DocumentState.SUPERSEDED
        else:
            state = DocumentState.FINAL
        views.append(
            DocumentView(
                record=r,
                state=state,
                superseded_by_id=superseded_by.get(r.id),
                reversed_by_id=reversed_by.get(r.id),
            )
        )
    return views


async def can_create_new_invoice(session: AsyncSession, *, project_id: uuid.UUID) -> bool:
    return await load_current(session, project_id=project_id, doc_type=DocumentType.INVOICE) is None


async def _flush(session: AsyncSession, *, operation: str, document_number: str) -> None:
    try:
        await session.flush()
    except SQLAlchemyError as e:
        logger.error(
            "Persisting %s failed; number %s is burned and needs manual inspection",
            operation,
            document_number,
            exc_info=True,
        )
        raise PersistenceFailure(f"Could not persist {operation} of {document_number}") from e


async def _discard_draft(session: AsyncSession, *, project_id: uuid.UUID, doc_type: DocumentType) -> None:
    await session.execute(
        delete(DraftRecord).where(DraftRecord.project_id == project_id, DraftRecord.doc_type == doc_type)
    )


async def finalize_document(
    session: AsyncSession,
    *,
    actor: str,
    allocator: SequenceAllocator,
    project_id: uuid.UUID,
    doc_type: DocumentType,
    payload: dict[str, Any],
    today: date | None = None,
) -> DocumentRecord:
    snapshot = snapshot_payload(payload)
    project = await _get_project(session, project_id, for_update=True)

    current = await load_current(session, project_id=project_id, doc_type=doc_type)
    if current is not None:
        if doc_type in VERSIONED_TYPES:
            return await revise_version(session, actor=actor, record_id=current.id, payload=snapshot, today=today)
        if doc_type not in MULTI_ACTIVE_TYPES:
            raise IllegalStateTransition(
                f"Project already has an active {doc_type} ({current.document_number}); "
                "finalized documents cannot be overwritten"
            )
    check_transition(doc_type, DocumentState.DRAFT, DocumentState.FINAL)

    # Allocation commits on its own before this session writes anything.
    document_number = await allocator.allocate(series_for(doc_type), today=today)

    artifact_path = render_document_pdf(
        doc_type=doc_type,
        document_number=document_number,
        version=1,
        payload=snapshot,
        customer_name=project.customer_name,
        project_name=project.name,
        issued_on=today,
    )

    record = DocumentRecord(
        project_id=project.id,
        doc_type=doc_type,
        document_number=document_number,
        version=1,
        lifecycle_state=DocumentState.FINAL,
        payload_snapshot=snapshot,
        artifact_path=artifact_path,
    )
    session.add(record)
    await _flush(session, operation="finalize", document_number=document_number)
    await _ensure_single_active(session, project_id=project.id, doc_type=doc_type)
    await _discard_draft(session, project_id=project.id, doc_type=doc_type)

    await audit_log(
        session,
        actor=actor,
        entity_type="document",
        entity_id=record.id,
        action="finalize",
        before={"state": DocumentState.DRAFT},
        after=document_summary(record),
    )
    logger.info(
        "Finalized %s %s",
        doc_type.value,
        document_number,
        extra={"project_id": str(project.id), "document_id": str(record.id)},
    )
    return record


async def revise_version(
    session: AsyncSession,
    *,
    actor: str,
    record_id: uuid.UUID,
    payload: dict[str, Any],
    today: date | None = None,
) -> DocumentRecord:
    snapshot = snapshot_payload(payload)
    existing = await load_record(session, record_id)
    if existing.doc_type not in VERSIONED_TYPES:
        raise IllegalStateTransition(f"Only delivery notes can be revised (got {existing.doc_type})")

    project = await _get_project(session, existing.project_id, for_update=True)
    state = await effective_state(session, existing)
    if state == DocumentState.SUPERSEDED:
        raise IllegalStateTransition(
            f"{existing.document_number} v{existing.version} is not the current version and cannot be revised"
        )
    check_transition(existing.doc_type, state, DocumentState.SUPERSEDED, is_reversal=existing.is_reversal)

    new_version = existing.version + 1
    artifact_path = render_document_pdf(
        doc_type=existing.doc_type,
        document_number=existing.document_number,
        version=new_version,
        payload=snapshot,
        customer_name=project.customer_name,
        project_name=project.name,
        issued_on=today,
    )

    record = DocumentRecord(
        project_id=existing.project_id,
        doc_type=existing.doc_type,
        document_number=existing.document_number,
        version=new_version,
        lifecycle_state=DocumentState.FINAL,
        payload_snapshot=snapshot,
        artifact_path=artifact_path,
        supersedes_id=existing.id,
    )
    session.add(record)
    await _flush(session, operation="revision", document_number=existing.document_number)
    await _ensure_single_active(session, project_id=existing.project_id, doc_type=existing.doc_type)
    await _discard_draft(session, project_id=existing.project_id, doc_type=existing.doc_type)

    await audit_log(
        session,
        actor=actor,
        entity_type="document",
        entity_id=record.id,
        action="revise",
        before=document_summary(existing),
        after=document_summary(record),
    )
    logger.info(
        "Revised %s %s to version %s",
        existing.doc_type.value,
        existing.document_number,
        new_version,
        extra={"project_id": str(existing.project_id), "document_id": str(record.id)},
    )
    return record


async def reverse_invoice(
    session: AsyncSession,
    *,
    actor: str,
    allocator: SequenceAllocator,
    record_id: uuid.UUID,
    reason: str,
    today: date | None = None,
) -> ReversalResult:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailure("A reversal reason is required")

    original = await load_record(session, record_id)
    if original.doc_type not in REVERSIBLE_TYPES or original.is_reversal:
        raise IllegalStateTransition(f"{original.document_number} cannot be reversed")
    project = await _get_project(session, original.project_id, for_update=True)
    await session.refresh(original)
    state = await effective_state(session, original)
    check_transition(original.doc_type, state, DocumentState.REVERSED, is_reversal=original.is_reversal)

    reversed_on = today or date.today()

    reversal_number = await allocator.allocate(NumberSeries.REVERSAL, today=today)
    reversal_payload = build_reversal_payload(original, reason=reason, reversed_on=reversed_on)
    artifact_path = render_document_pdf(
        doc_type=original.doc_type,
        document_number=reversal_number,
        version=1,
        payload=reversal_payload,
        customer_name=project.customer_name,
        project_name=project.name,
        reversal_of_number=original.document_number,
        reversal_reason=reason,
        issued_on=reversed_on,
    )

    before = document_summary(original)
    reversal = DocumentRecord(
        project_id=original.project_id,
        doc_type=original.doc_type,
        document_number=reversal_number,
        version=1,
        lifecycle_state=DocumentState.FINAL,
        payload_snapshot=reversal_payload,
        artifact_path=artifact_path,
        reversal_of_id=original.id,
    )
    session.add(reversal)

    original.lifecycle_state = DocumentState.REVERSED
    original.reversal_reason = reason
    original.reversed_at = utcnow()
    await _flush(session, operation="reversal", document_number=reversal_number)
    reversal_count = await session.scalar(
        select(func.count()).select_from(DocumentRecord).where(DocumentRecord.reversal_of_id == original.id)
    )
    if reversal_count > 1:
        raise IllegalStateTransition(f"{original.document_number} has already been reversed")

    await audit_log(
        session,
        actor=actor,
        entity_type="document",
        entity_id=reversal.id,
        action="create_reversal",
        after=document_summary(reversal),
    )
    await audit_log(
        session,
        actor=actor,
        entity_type="document",
        entity_id=original.id,
        action="reverse",
        before=before,
        after=document_summary(original),
    )
    logger.info(
        "Reversed %s with %s",
        original.document_number,
        reversal_number,
        extra={"project_id": str(original.project_id), "document_id": str(original.id)},
    )
    return ReversalResult(reversal_record=reversal, updated_original=original)
