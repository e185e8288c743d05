from salesdocs.models.audit_log import AuditLog
from salesdocs.models.document_record import DocumentRecord
from salesdocs.models.draft_record import DraftRecord
from salesdocs.models.project import Project
from salesdocs.models.sequence_counter import SequenceCounter

__all__ = [
    "AuditLog",
    "DocumentRecord",
    "DraftRecord",
    "Project",
    "SequenceCounter",
]
