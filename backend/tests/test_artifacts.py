from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from salesdocs.core.enums import DocumentType
from salesdocs.core.errors import ArtifactGenerationFailure, PersistenceFailure
from salesdocs.services.artifacts import artifact_rel_path, render_document_pdf
from salesdocs.services.pdf import format_de_amount, render_html


def test_format_de_amount() -> None:
    assert format_de_amount(1234.5) == "1.234,50"
    assert format_de_amount(-119) == "-119,00"
    assert format_de_amount("t") == "t"
    assert format_de_amount(True) == "True"


def test_artifact_paths_are_unique_per_version_and_reversal() -> None:
    assert (
        artifact_rel_path(doc_type=DocumentType.QUOTATION, document_number="ANG-2025-0001", version=1)
        == "pdfs/documents/quotation/Angebot_ANG-2025-0001.pdf"
    )
    assert (
        artifact_rel_path(doc_type=DocumentType.DELIVERY_NOTE, document_number="LS-2025-0003", version=3)
        == "pdfs/documents/delivery_note/Lieferschein_LS-2025-0003_v3.pdf"
    )
    assert (
        artifact_rel_path(
            doc_type=DocumentType.INVOICE, document_number="STORNO-2025-0001", version=1, is_reversal=True
        )
        == "pdfs/documents/invoice/Stornorechnung_STORNO-2025-0001.pdf"
    )


@pytest.mark.asyncio
async def test_document_template_renders_reversal(db_engine, monkeypatch) -> None:
    html: list[str] = []

    def _render_to_html(*, templates_dir: Path, template_name: str, context: dict, **_kwargs) -> None:
        html.append(render_html(templates_dir=templates_dir, template_name=template_name, context=context))

    monkeypatch.setattr("salesdocs.services.artifacts.render_pdf", _render_to_html)

    rel_path = render_document_pdf(
        doc_type=DocumentType.INVOICE,
        document_number="STORNO-2025-0001",
        version=1,
        payload={
            "positions": [{"description": "Rindenmulch", "quantity": -2, "unit_price": 45.0, "total": -90.0}],
            "gross_total": -107.1,
            "void": True,
        },
        customer_name="Gärtnerei Huber",
        project_name="Frühjahr",
        reversal_of_number="RE-2025-0007",
        reversal_reason="Preiskorrektur",
        issued_on=date(2025, 4, 2),
    )

    assert rel_path.endswith("Stornorechnung_STORNO-2025-0001.pdf")
    text = html[0]
    assert "Stornorechnung" in text
    assert "RE-2025-0007" in text
    assert "Preiskorrektur" in text
    assert "-90,00" in text
    assert "02.04.2025" in text


@pytest.mark.asyncio
async def test_render_failure_is_reported_as_artifact_failure(db_engine, monkeypatch) -> None:
    def _broken(**_kwargs) -> None:
        raise RuntimeError("fonts missing")

    monkeypatch.setattr("salesdocs.services.artifacts.render_pdf", _broken)

    with pytest.raises(ArtifactGenerationFailure) as exc:
        render_document_pdf(
            doc_type=DocumentType.QUOTATION,
            document_number="ANG-2025-0001",
            version=1,
            payload={},
            customer_name="Kunde",
            project_name="Projekt",
        )
    assert isinstance(exc.value, PersistenceFailure)
