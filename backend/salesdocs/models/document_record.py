from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, event, inspect
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from salesdocs.core.enums import DocumentState, DocumentType
from salesdocs.core.errors import IllegalStateTransition
from salesdocs.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from salesdocs.models.sql_enums import document_state_enum, document_type_enum


class DocumentRecord(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "document_records"
    __table_args__ = (
        UniqueConstraint("doc_type", "document_number", "version", name="uq_document_records_number_version"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True
    )
    doc_type: Mapped[DocumentType] = mapped_column(document_type_enum, nullable=False)
    document_number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    lifecycle_state: Mapped[DocumentState] = mapped_column(
        document_state_enum, nullable=False, default=DocumentState.FINAL
    )

    payload_snapshot: Mapped[dict] = mapped_column(JSONB, nullable=False)
    artifact_path: Mapped[str] = mapped_column(String(500), nullable=False)

    supersedes_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("document_records.id"), nullable=True, unique=True
    )
    reversal_of_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("document_records.id"), nullable=True, unique=True
    )
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reversed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None


# Columns a finalized record may still change: marking an invoice reversed.
MUTABLE_AFTER_FINALIZE = frozenset({"lifecycle_state", "reversal_reason", "reversed_at", "updated_at"})


@event.listens_for(DocumentRecord, "before_update")
def _guard_finalized_record(_mapper, _connection, target: DocumentRecord) -> None:
    state = inspect(target)
    for attr in state.mapper.column_attrs:
        if attr.key in MUTABLE_AFTER_FINALIZE:
            continue
        if state.attrs[attr.key].history.has_changes():
            raise IllegalStateTransition(
                f"Finalized document {target.document_number} is immutable (attempted change of {attr.key})"
            )

    lifecycle = state.attrs["lifecycle_state"].history
    if lifecycle.has_changes():
        before = lifecycle.deleted[0] if lifecycle.deleted else None
        if before != DocumentState.FINAL or target.lifecycle_state != DocumentState.REVERSED:
            raise IllegalStateTransition(
                f"Invalid lifecycle change for {target.document_number}: {before} -> {target.lifecycle_state}"
            )
