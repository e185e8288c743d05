from __future__ import annotations

import uuid
from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio

from salesdocs.api.deps import get_allocator
from salesdocs.core.db import get_session
from salesdocs.services.numbering import SequenceAllocator


AUTH = ("test-user", "test-pass")


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncIterator[httpx.AsyncClient]:
    from salesdocs.main import create_app

    app = create_app()

    async def _session_override():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_allocator] = lambda: SequenceAllocator(session_factory, year_override=2025)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test", auth=AUTH) as c:
        yield c


async def _create_project(client: httpx.AsyncClient, name: str = "Neubau Schmidt") -> str:
    resp = await client.post("/api/v1/projects", json={"name": name, "customer_name": "Familie Schmidt"})
    assert resp.status_code == 200
    return resp.json()["id"]


@pytest.mark.asyncio
async def test_healthz_is_public(client: httpx.AsyncClient) -> None:
    resp = await client.get("/healthz", auth=None)

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_api_requires_basic_auth(client: httpx.AsyncClient) -> None:
    assert (await client.get("/api/v1/projects", auth=None)).status_code == 401
    assert (await client.get("/api/v1/projects", auth=("test-user", "wrong"))).status_code == 401


@pytest.mark.asyncio
async def test_invoice_flow_over_http(client: httpx.AsyncClient) -> None:
    project_id = await _create_project(client)
    payload = {"payload": {"positions": [{"description": "Pflastersteine", "total": 200.0}], "gross_total": 238.0}}

    resp = await client.post(f"/api/v1/projects/{project_id}/documents/INVOICE/finalize", json=payload)
    assert resp.status_code == 200
    body = resp.json()
    record_id = body["record"]["id"]
    assert body["record"]["document_number"] == "RE-2025-0001"
    assert body["status_proposal"] == {"project_id": project_id, "from_status": "QUOTATION", "to_status": "INVOICE"}

    resp = await client.post(f"/api/v1/projects/{project_id}/documents/INVOICE/finalize", json=payload)
    assert resp.status_code == 409

    resp = await client.get(f"/api/v1/projects/{project_id}/documents/can-create-invoice")
    assert resp.json()["can_create"] is False

    resp = await client.post(f"/api/v1/documents/{record_id}/reverse", json={"reason": "  "})
    assert resp.status_code == 422

    resp = await client.post(f"/api/v1/documents/{record_id}/reverse", json={"reason": "Preiskorrektur"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["updated_original"]["lifecycle_state"] == "REVERSED"
    assert body["reversal_record"]["document_number"] == "STORNO-2025-0001"
    assert body["reversal_record"]["reversal_of_id"] == record_id

    resp = await client.get(f"/api/v1/projects/{project_id}/documents/can-create-invoice")
    assert resp.json()["can_create"] is True

    resp = await client.get(f"/api/v1/projects/{project_id}/documents", params={"doc_type": "INVOICE"})
    assert resp.status_code == 200
    states = {e["record"]["document_number"]: (e["state"], e["is_current"]) for e in resp.json()}
    assert states == {"RE-2025-0001": ("REVERSED", False), "STORNO-2025-0001": ("FINAL", False)}

    resp = await client.get(f"/api/v1/documents/{record_id}/artifact")
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"


@pytest.mark.asyncio
async def test_status_confirmation_over_http(client: httpx.AsyncClient) -> None:
    project_id = await _create_project(client)
    await client.post(f"/api/v1/projects/{project_id}/documents/QUOTATION/finalize", json={"payload": {}})

    resp = await client.get(f"/api/v1/projects/{project_id}/status/proposal", params={"doc_type": "QUOTATION"})
    assert resp.json() == {"project_id": project_id, "from_status": "QUOTATION", "to_status": "QUOTATION_SENT"}

    resp = await client.post(
        f"/api/v1/projects/{project_id}/status/confirm",
        json={"from_status": "QUOTATION", "to_status": "QUOTATION_SENT", "decision": "ACCEPT_WITH_TRANSITION"},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "QUOTATION_SENT"

    resp = await client.post(
        f"/api/v1/projects/{project_id}/status/confirm",
        json={"from_status": "QUOTATION", "to_status": "QUOTATION_SENT", "decision": "ACCEPT_WITH_TRANSITION"},
    )
    assert resp.status_code == 409

    resp = await client.post(f"/api/v1/projects/{project_id}/mark-paid")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_drafts_over_http(client: httpx.AsyncClient) -> None:
    project_id = await _create_project(client)

    resp = await client.get(f"/api/v1/projects/{project_id}/drafts/DELIVERY_NOTE")
    assert resp.status_code == 404

    resp = await client.put(f"/api/v1/projects/{project_id}/drafts/DELIVERY_NOTE", json={"payload": {"note": "x"}})
    assert resp.status_code == 200
    assert resp.json()["saved"] is True

    resp = await client.get(f"/api/v1/projects/{project_id}/form-payload/DELIVERY_NOTE")
    assert resp.json() == {"source": "DRAFT", "payload": {"note": "x"}}

    resp = await client.put(f"/api/v1/projects/{uuid.uuid4()}/drafts/DELIVERY_NOTE", json={"payload": {}})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_numbering_endpoints(client: httpx.AsyncClient) -> None:
    project_id = await _create_project(client)
    await client.post(f"/api/v1/projects/{project_id}/documents/ORDER_CONFIRMATION/finalize", json={"payload": {}})

    resp = await client.get("/api/v1/numbering/check", params={"number": "AB-2025-0001", "doc_type": "ORDER_CONFIRMATION"})
    assert resp.json()["exists"] is True

    resp = await client.get(
        "/api/v1/numbering/check",
        params={"number": "AB-2025-0001", "doc_type": "ORDER_CONFIRMATION", "excluding_project_id": project_id},
    )
    assert resp.json()["exists"] is False

    resp = await client.get("/api/v1/numbering/counters", params={"year": 2025})
    counters = {c["series"]: c for c in resp.json()}
    assert counters["ORDER_CONFIRMATION"]["counter_value"] == 1
    assert counters["ORDER_CONFIRMATION"]["next_number"] == "AB-2025-0002"
    assert counters["REVERSAL"]["next_number"] == "STORNO-2025-0001"


@pytest.mark.asyncio
async def test_unknown_document_returns_404(client: httpx.AsyncClient) -> None:
    resp = await client.get(f"/api/v1/documents/{uuid.uuid4()}")

    assert resp.status_code == 404
