from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, PrimaryKeyConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from salesdocs.core.enums import DocumentType
from salesdocs.models.base import Base, utcnow
from salesdocs.models.sql_enums import document_type_enum


class DraftRecord(Base):
    __tablename__ = "document_drafts"
    __table_args__ = (PrimaryKeyConstraint("project_id", "doc_type", name="pk_document_drafts"),)

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    doc_type: Mapped[DocumentType] = mapped_column(document_type_enum, nullable=False)
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
