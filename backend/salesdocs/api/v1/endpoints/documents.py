from __future__ import annotations

import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from salesdocs.api.deps import get_allocator, http_error
from salesdocs.core.config import get_settings
from salesdocs.core.db import get_session
from salesdocs.core.enums import DocumentType
from salesdocs.core.security import require_actor
from salesdocs.schemas.documents import (
    CanCreateInvoiceOut,
    DocumentFinalize,
    DocumentFinalizeOut,
    DocumentHistoryEntryOut,
    DocumentRecordOut,
    DocumentReverse,
    DocumentReverseOut,
    DocumentRevise,
)
from salesdocs.schemas.projects import StatusProposalOut
from salesdocs.services.documents import (
    can_create_new_invoice,
    finalize_document,
    list_history,
    load_current,
    load_record,
    reverse_invoice,
    revise_version,
)
from salesdocs.services.numbering import SequenceAllocator
from salesdocs.services.project_status import propose_transition


router = APIRouter()


@router.get("/projects/{project_id}/documents", response_model=list[DocumentHistoryEntryOut])
async def get_document_history(
    project_id: uuid.UUID,
    doc_type: DocumentType | None = None,
    session: AsyncSession = Depends(get_session),
) -> list[DocumentHistoryEntryOut]:
    views = await list_history(session, project_id=project_id, doc_type=doc_type)
    return [
        DocumentHistoryEntryOut(
            record=DocumentRecordOut.model_validate(v.record),
            state=v.state,
            is_current=v.is_current,
            superseded_by_id=v.superseded_by_id,
            reversed_by_id=v.reversed_by_id,
        )
        for v in views
    ]


@router.get("/projects/{project_id}/documents/can-create-invoice", response_model=CanCreateInvoiceOut)
async def get_can_create_invoice(
    project_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
) -> CanCreateInvoiceOut:
    return CanCreateInvoiceOut(
        project_id=project_id,
        can_create=await can_create_new_invoice(session, project_id=project_id),
    )


@router.get("/projects/{project_id}/documents/{doc_type}/current", response_model=DocumentRecordOut)
async def get_current_document(
    project_id: uuid.UUID,
    doc_type: DocumentType,
    session: AsyncSession = Depends(get_session),
) -> DocumentRecordOut:
    record = await load_current(session, project_id=project_id, doc_type=doc_type)
    if record is None:
        raise HTTPException(status_code=404, detail="No active document")
    return DocumentRecordOut.model_validate(record)


@router.post("/projects/{project_id}/documents/{doc_type}/finalize", response_model=DocumentFinalizeOut)
async def finalize_document_endpoint(
    project_id: uuid.UUID,
    doc_type: DocumentType,
    data: DocumentFinalize,
    session: AsyncSession = Depends(get_session),
    allocator: SequenceAllocator = Depends(get_allocator),
    actor: str = Depends(require_actor),
) -> DocumentFinalizeOut:
    try:
        async with session.begin():
            record = await finalize_document(
                session,
                actor=actor,
                allocator=allocator,
                project_id=project_id,
                doc_type=doc_type,
                payload=data.payload,
            )
            proposal = await propose_transition(session, project_id=project_id, doc_type=doc_type)
    except ValueError as e:
        raise http_error(e) from e

    return DocumentFinalizeOut(
        record=DocumentRecordOut.model_validate(record),
        status_proposal=StatusProposalOut.model_validate(proposal) if proposal is not None else None,
    )


@router.get("/documents/{record_id}", response_model=DocumentRecordOut)
async def get_document(record_id: uuid.UUID, session: AsyncSession = Depends(get_session)) -> DocumentRecordOut:
    try:
        record = await load_record(session, record_id)
    except ValueError as e:
        raise http_error(e) from e
    return DocumentRecordOut.model_validate(record)


@router.post("/documents/{record_id}/revise", response_model=DocumentRecordOut)
async def revise_document_endpoint(
    record_id: uuid.UUID,
    data: DocumentRevise,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_actor),
) -> DocumentRecordOut:
    try:
        async with session.begin():
            record = await revise_version(session, actor=actor, record_id=record_id, payload=data.payload)
    except ValueError as e:
        raise http_error(e) from e
    return DocumentRecordOut.model_validate(record)


@router.post("/documents/{record_id}/reverse", response_model=DocumentReverseOut)
async def reverse_document_endpoint(
    record_id: uuid.UUID,
    data: DocumentReverse,
    session: AsyncSession = Depends(get_session),
    allocator: SequenceAllocator = Depends(get_allocator),
    actor: str = Depends(require_actor),
) -> DocumentReverseOut:
    try:
        async with session.begin():
            result = await reverse_invoice(
                session,
                actor=actor,
                allocator=allocator,
                record_id=record_id,
                reason=data.reason,
            )
    except ValueError as e:
        raise http_error(e) from e
    return DocumentReverseOut(
        reversal_record=DocumentRecordOut.model_validate(result.reversal_record),
        updated_original=DocumentRecordOut.model_validate(result.updated_original),
    )


@router.get("/documents/{record_id}/artifact")
async def download_artifact(record_id: uuid.UUID, session: AsyncSession = Depends(get_session)) -> FileResponse:
    try:
        record = await load_record(session, record_id)
    except ValueError as e:
        raise http_error(e) from e

    settings = get_settings()
    base_dir = settings.app_storage_dir.resolve()
    abs_path = (settings.app_storage_dir / record.artifact_path).resolve()
    try:
        abs_path.relative_to(base_dir)
    except ValueError as e:
        raise HTTPException(status_code=403, detail="Forbidden path") from e

    if not abs_path.is_file():
        raise HTTPException(status_code=404, detail="Artifact missing")
    return FileResponse(path=str(abs_path), filename=Path(record.artifact_path).name, media_type="application/pdf")
