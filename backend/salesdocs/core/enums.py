from __future__ import annotations

from enum import StrEnum


class DocumentType(StrEnum):
    QUOTATION = "QUOTATION"
    ORDER_CONFIRMATION = "ORDER_CONFIRMATION"
    DELIVERY_NOTE = "DELIVERY_NOTE"
    INVOICE = "INVOICE"
    PROFORMA_INVOICE = "PROFORMA_INVOICE"


class NumberSeries(StrEnum):
    """Counter namespaces. Every document type has its own series; reversals draw from REVERSAL."""

    QUOTATION = "QUOTATION"
    ORDER_CONFIRMATION = "ORDER_CONFIRMATION"
    DELIVERY_NOTE = "DELIVERY_NOTE"
    INVOICE = "INVOICE"
    PROFORMA_INVOICE = "PROFORMA_INVOICE"
    REVERSAL = "REVERSAL"


class DocumentState(StrEnum):
    DRAFT = "DRAFT"
    FINAL = "FINAL"
    SUPERSEDED = "SUPERSEDED"
    REVERSED = "REVERSED"


class ProjectStatus(StrEnum):
    QUOTATION = "QUOTATION"
    QUOTATION_SENT = "QUOTATION_SENT"
    ORDER_CONFIRMATION = "ORDER_CONFIRMATION"
    DELIVERY_NOTE = "DELIVERY_NOTE"
    INVOICE = "INVOICE"
    PAID = "PAID"
    LOST = "LOST"


class StatusDecision(StrEnum):
    ACCEPT_WITH_TRANSITION = "ACCEPT_WITH_TRANSITION"
    ACCEPT_WITHOUT_TRANSITION = "ACCEPT_WITHOUT_TRANSITION"


class FormPayloadSource(StrEnum):
    FINAL = "FINAL"
    DRAFT = "DRAFT"
    EMPTY = "EMPTY"
