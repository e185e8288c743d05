from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from salesdocs.core.enums import DocumentType, NumberSeries


class NumberCheckOut(BaseModel):
    number: str
    doc_type: DocumentType
    exists: bool


class CounterStateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    series: NumberSeries
    year: int
    counter_value: int
    next_number: str
