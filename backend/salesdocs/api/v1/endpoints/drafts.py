from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from salesdocs.api.deps import http_error
from salesdocs.core.db import get_session
from salesdocs.core.enums import DocumentType
from salesdocs.core.security import require_actor
from salesdocs.schemas.drafts import DraftOut, DraftSave, DraftSaveOut, FormPayloadOut
from salesdocs.services.drafts import load_draft, load_form_payload, save_draft


router = APIRouter()


@router.get("/{project_id}/drafts/{doc_type}", response_model=DraftSave)
async def get_draft(
    project_id: uuid.UUID,
    doc_type: DocumentType,
    session: AsyncSession = Depends(get_session),
) -> DraftSave:
    payload = await load_draft(session, project_id=project_id, doc_type=doc_type)
    if payload is None:
        raise HTTPException(status_code=404, detail="No draft")
    return DraftSave(payload=payload)


@router.put("/{project_id}/drafts/{doc_type}", response_model=DraftSaveOut)
async def put_draft(
    project_id: uuid.UUID,
    doc_type: DocumentType,
    data: DraftSave,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_actor),
) -> DraftSaveOut:
    try:
        async with session.begin():
            draft = await save_draft(
                session, actor=actor, project_id=project_id, doc_type=doc_type, payload=data.payload
            )
    except ValueError as e:
        raise http_error(e) from e
    return DraftSaveOut(saved=draft is not None, draft=DraftOut.model_validate(draft) if draft is not None else None)


@router.get("/{project_id}/form-payload/{doc_type}", response_model=FormPayloadOut)
async def get_form_payload(
    project_id: uuid.UUID,
    doc_type: DocumentType,
    session: AsyncSession = Depends(get_session),
) -> FormPayloadOut:
    form = await load_form_payload(session, project_id=project_id, doc_type=doc_type)
    return FormPayloadOut.model_validate(form)
