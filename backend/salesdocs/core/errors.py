from __future__ import annotations


class DocumentError(ValueError):
    """Base class for lifecycle failures; stays a ValueError so service callers keep one seam."""


class NotFound(DocumentError):
    pass


class ValidationFailure(DocumentError):
    pass


class IllegalStateTransition(DocumentError):
    pass


class PersistenceFailure(DocumentError):
    pass


class ArtifactGenerationFailure(PersistenceFailure):
    pass


class AllocationExhausted(DocumentError):
    pass
