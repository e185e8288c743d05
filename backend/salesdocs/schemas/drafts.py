from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from salesdocs.core.enums import DocumentType, FormPayloadSource


class DraftSave(BaseModel):
    payload: dict[str, Any] = Field(default_factory=dict)


class DraftOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: UUID
    doc_type: DocumentType
    payload: dict[str, Any]
    updated_at: datetime


class DraftSaveOut(BaseModel):
    saved: bool
    draft: DraftOut | None


class FormPayloadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source: FormPayloadSource
    payload: dict[str, Any] | None
