from __future__ import annotations

from fastapi import HTTPException

from salesdocs.core.db import get_sessionmaker
from salesdocs.core.errors import DocumentError, IllegalStateTransition, NotFound, PersistenceFailure, ValidationFailure
from salesdocs.services.numbering import SequenceAllocator


_STATUS_CODES: tuple[tuple[type[DocumentError], int], ...] = (
    (NotFound, 404),
    (ValidationFailure, 422),
    (IllegalStateTransition, 409),
    (PersistenceFailure, 503),
)


def get_allocator() -> SequenceAllocator:
    return SequenceAllocator.from_settings(get_sessionmaker())


def http_error(e: ValueError) -> HTTPException:
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(e, exc_type):
            return HTTPException(status_code=status_code, detail=str(e))
    return HTTPException(status_code=409, detail=str(e))
