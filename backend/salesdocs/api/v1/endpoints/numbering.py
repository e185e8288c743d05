from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from salesdocs.api.deps import get_allocator
from salesdocs.core.enums import DocumentType
from salesdocs.schemas.numbering import CounterStateOut, NumberCheckOut
from salesdocs.services.numbering import SequenceAllocator, format_document_number


router = APIRouter()


@router.get("/check", response_model=NumberCheckOut)
async def check_number(
    number: str = Query(..., max_length=64),
    doc_type: DocumentType = Query(...),
    excluding_project_id: uuid.UUID | None = Query(None),
    allocator: SequenceAllocator = Depends(get_allocator),
) -> NumberCheckOut:
    exists = await allocator.number_exists(number, doc_type, excluding_project_id=excluding_project_id)
    return NumberCheckOut(number=number.strip(), doc_type=doc_type, exists=exists)


@router.get("/counters", response_model=list[CounterStateOut])
async def list_counters(
    year: int | None = Query(None, ge=2000, le=2100),
    allocator: SequenceAllocator = Depends(get_allocator),
) -> list[CounterStateOut]:
    states = await allocator.counter_states(year=year)
    return [
        CounterStateOut(
            series=s.series,
            year=s.year,
            counter_value=s.counter_value,
            next_number=format_document_number(s.series, s.year, s.counter_value + 1),
        )
        for s in states
    ]
