from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from salesdocs.core.enums import DocumentState, DocumentType
from salesdocs.schemas.projects import StatusProposalOut


class DocumentFinalize(BaseModel):
    payload: dict[str, Any] = Field(default_factory=dict)


class DocumentRevise(BaseModel):
    payload: dict[str, Any] = Field(default_factory=dict)


class DocumentReverse(BaseModel):
    # Blank reasons are rejected by the service with a ValidationFailure.
    reason: str = Field(default="", max_length=2000)


class DocumentRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    doc_type: DocumentType
    document_number: str
    version: int
    lifecycle_state: DocumentState
    payload_snapshot: dict[str, Any]
    artifact_path: str
    supersedes_id: UUID | None
    reversal_of_id: UUID | None
    reversal_reason: str | None
    reversed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class DocumentHistoryEntryOut(BaseModel):
    record: DocumentRecordOut
    state: DocumentState
    is_current: bool
    superseded_by_id: UUID | None
    reversed_by_id: UUID | None


class DocumentFinalizeOut(BaseModel):
    record: DocumentRecordOut
    status_proposal: StatusProposalOut | None


class DocumentReverseOut(BaseModel):
    reversal_record: DocumentRecordOut
    updated_original: DocumentRecordOut


class CanCreateInvoiceOut(BaseModel):
    project_id: UUID
    can_create: bool
