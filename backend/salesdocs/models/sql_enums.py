from __future__ import annotations

from sqlalchemy import Enum

from salesdocs.core.enums import DocumentState, DocumentType, NumberSeries, ProjectStatus

document_type_enum = Enum(DocumentType, name="document_type")
number_series_enum = Enum(NumberSeries, name="number_series")

# Only FINAL and REVERSED are ever stored; DRAFT lives in document_drafts and SUPERSEDED is derived.
document_state_enum = Enum(DocumentState, name="document_state")

project_status_enum = Enum(ProjectStatus, name="project_status")
