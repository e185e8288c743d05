from __future__ import annotations

import logging
from datetime import date
from typing import Any

from salesdocs.core.config import get_settings
from salesdocs.core.enums import DocumentType
from salesdocs.core.errors import ArtifactGenerationFailure
from salesdocs.services.pdf import TEMPLATES_DIR, render_pdf


logger = logging.getLogger(__name__)

DOCUMENT_TITLES: dict[DocumentType, str] = {
    DocumentType.QUOTATION: "Angebot",
    DocumentType.ORDER_CONFIRMATION: "Auftragsbestätigung",
    DocumentType.DELIVERY_NOTE: "Lieferschein",
    DocumentType.INVOICE: "Rechnung",
    DocumentType.PROFORMA_INVOICE: "Proforma-Rechnung",
}

_FILE_STEMS: dict[DocumentType, str] = {
    DocumentType.QUOTATION: "Angebot",
    DocumentType.ORDER_CONFIRMATION: "Auftragsbestaetigung",
    DocumentType.DELIVERY_NOTE: "Lieferschein",
    DocumentType.INVOICE: "Rechnung",
    DocumentType.PROFORMA_INVOICE: "Proforma",
}


def artifact_rel_path(*, doc_type: DocumentType, document_number: str, version: int, is_reversal: bool = False) -> str:
    stem = "Stornorechnung" if is_reversal else _FILE_STEMS[doc_type]
    suffix = f"_v{version}" if version > 1 else ""
    return f"pdfs/documents/{doc_type.value.lower()}/{stem}_{document_number}{suffix}.pdf"


def _scalar_fields(payload: dict[str, Any]) -> list[tuple[str, Any]]:
    return [
        (str(k), v)
        for k, v in sorted(payload.items())
        if isinstance(v, (str, int, float, bool)) and k not in {"customer_name", "project_name"}
    ]


def render_document_pdf(
    *,
    doc_type: DocumentType,
    document_number: str,
    version: int,
    payload: dict[str, Any],
    customer_name: str,
    project_name: str,
    reversal_of_number: str | None = None,
    reversal_reason: str | None = None,
    issued_on: date | None = None,
) -> str:
    """
    Render the PDF for a record about to be persisted and return its storage-relative path.

    Any rendering error is re-raised as ArtifactGenerationFailure; the caller must not
    persist the record in that case.
    """
    settings = get_settings()
    is_reversal = reversal_of_number is not None
    rel_path = artifact_rel_path(
        doc_type=doc_type, document_number=document_number, version=version, is_reversal=is_reversal
    )
    positions = [p for p in payload.get("positions") or [] if isinstance(p, dict)]

    try:
        render_pdf(
            templates_dir=TEMPLATES_DIR,
            template_name="document.html",
            context={
                "title": "Stornorechnung" if is_reversal else DOCUMENT_TITLES[doc_type],
                "document_number": document_number,
                "version": version,
                "issued_on": (issued_on or date.today()).strftime("%d.%m.%Y"),
                "company_name": settings.company_name,
                "company_address": settings.company_address,
                "company_email": settings.company_email,
                "company_logo_path": settings.company_logo_path,
                "customer_name": payload.get("customer_name") or customer_name,
                "project_name": payload.get("project_name") or project_name,
                "positions": positions,
                "fields": _scalar_fields(payload),
                "reversal_of_number": reversal_of_number,
                "reversal_reason": reversal_reason,
            },
            output_path=settings.app_storage_dir / rel_path,
            css_paths=[TEMPLATES_DIR / "base.css"],
        )
    except Exception as e:
        logger.exception("Artifact generation failed for %s", document_number)
        raise ArtifactGenerationFailure(f"Could not generate PDF for {document_number}: {e}") from e

    return rel_path
