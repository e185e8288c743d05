from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from salesdocs.core.enums import DocumentType, ProjectStatus, StatusDecision
from salesdocs.core.errors import IllegalStateTransition
from salesdocs.models.audit_log import AuditLog
from salesdocs.models.project import Project
from salesdocs.services.documents import finalize_document
from salesdocs.services.project_status import (
    StatusProposal,
    apply_transition,
    confirm_and_apply,
    mark_project_paid,
    propose_status,
    propose_transition,
)


ACTOR = "tester"


async def _set_status(session_factory, project_id, status: ProjectStatus) -> None:
    async with session_factory() as session:
        async with session.begin():
            project = await session.get(Project, project_id)
            project.status = status


async def _status(session_factory, project_id) -> ProjectStatus:
    async with session_factory() as session:
        return (await session.get(Project, project_id)).status


async def _propose(session_factory, project_id, doc_type):
    async with session_factory() as session:
        return await propose_transition(session, project_id=project_id, doc_type=doc_type)


def test_propose_status_mapping() -> None:
    assert propose_status(DocumentType.QUOTATION) == ProjectStatus.QUOTATION_SENT
    assert propose_status(DocumentType.ORDER_CONFIRMATION) == ProjectStatus.DELIVERY_NOTE
    assert propose_status(DocumentType.DELIVERY_NOTE) == ProjectStatus.INVOICE
    assert propose_status(DocumentType.INVOICE) == ProjectStatus.INVOICE
    assert propose_status(DocumentType.PROFORMA_INVOICE) is None


@pytest.mark.asyncio
async def test_propose_transition_only_moves_forward(session_factory, project) -> None:
    proposal = await _propose(session_factory, project.id, DocumentType.QUOTATION)
    assert proposal == StatusProposal(
        project_id=project.id, from_status=ProjectStatus.QUOTATION, to_status=ProjectStatus.QUOTATION_SENT
    )

    assert await _propose(session_factory, project.id, DocumentType.PROFORMA_INVOICE) is None

    await _set_status(session_factory, project.id, ProjectStatus.INVOICE)
    assert await _propose(session_factory, project.id, DocumentType.INVOICE) is None
    assert await _propose(session_factory, project.id, DocumentType.QUOTATION) is None

    await _set_status(session_factory, project.id, ProjectStatus.LOST)
    assert await _propose(session_factory, project.id, DocumentType.INVOICE) is None


@pytest.mark.asyncio
async def test_invoice_finalize_proposal_is_applied_only_on_confirmation(session_factory, allocator) -> None:
    async with session_factory() as session:
        async with session.begin():
            p1 = Project(name="P1", customer_name="Kunde Eins")
            p2 = Project(name="P2", customer_name="Kunde Zwei")
            session.add_all([p1, p2])

    for p in (p1, p2):
        async with session_factory() as session:
            async with session.begin():
                record = await finalize_document(
                    session,
                    actor=ACTOR,
                    allocator=allocator,
                    project_id=p.id,
                    doc_type=DocumentType.INVOICE,
                    payload={"gross_total": 119.0},
                    today=date(2025, 9, 1),
                )
                proposal = await propose_transition(session, project_id=p.id, doc_type=DocumentType.INVOICE)
        assert proposal is not None
        assert proposal.to_status == ProjectStatus.INVOICE

        decision = (
            StatusDecision.ACCEPT_WITH_TRANSITION if p is p1 else StatusDecision.ACCEPT_WITHOUT_TRANSITION
        )
        async with session_factory() as session:
            async with session.begin():
                await confirm_and_apply(session, actor=ACTOR, proposal=proposal, decision=decision)

        if p is p1:
            assert record.document_number == "RE-2025-0001"

    assert await _status(session_factory, p1.id) == ProjectStatus.INVOICE
    assert await _status(session_factory, p2.id) == ProjectStatus.QUOTATION

    async with session_factory() as session:
        audit = (
            await session.execute(
                select(AuditLog).where(AuditLog.entity_type == "project", AuditLog.action == "status_change")
            )
        ).scalar_one()
    assert audit.entity_id == p1.id
    assert audit.before == {"status": "QUOTATION"}
    assert audit.after == {"status": "INVOICE"}


@pytest.mark.asyncio
async def test_stale_proposal_is_rejected(session_factory, project) -> None:
    proposal = await _propose(session_factory, project.id, DocumentType.QUOTATION)
    await _set_status(session_factory, project.id, ProjectStatus.ORDER_CONFIRMATION)

    with pytest.raises(IllegalStateTransition):
        async with session_factory() as session:
            async with session.begin():
                await confirm_and_apply(
                    session, actor=ACTOR, proposal=proposal, decision=StatusDecision.ACCEPT_WITH_TRANSITION
                )

    assert await _status(session_factory, project.id) == ProjectStatus.ORDER_CONFIRMATION


@pytest.mark.asyncio
async def test_lost_projects_stay_lost(session_factory, project) -> None:
    async with session_factory() as session:
        async with session.begin():
            await apply_transition(session, actor=ACTOR, project_id=project.id, target=ProjectStatus.LOST)

    with pytest.raises(IllegalStateTransition):
        async with session_factory() as session:
            async with session.begin():
                await apply_transition(session, actor=ACTOR, project_id=project.id, target=ProjectStatus.INVOICE)

    assert await _status(session_factory, project.id) == ProjectStatus.LOST


@pytest.mark.asyncio
async def test_apply_transition_may_move_backwards(session_factory, project) -> None:
    await _set_status(session_factory, project.id, ProjectStatus.DELIVERY_NOTE)

    async with session_factory() as session:
        async with session.begin():
            updated = await apply_transition(
                session, actor=ACTOR, project_id=project.id, target=ProjectStatus.ORDER_CONFIRMATION
            )

    assert updated.status == ProjectStatus.ORDER_CONFIRMATION


@pytest.mark.asyncio
async def test_mark_paid_requires_active_invoice(session_factory, allocator, project) -> None:
    with pytest.raises(IllegalStateTransition):
        async with session_factory() as session:
            async with session.begin():
                await mark_project_paid(session, actor=ACTOR, project_id=project.id)

    async with session_factory() as session:
        async with session.begin():
            await finalize_document(
                session,
                actor=ACTOR,
                allocator=allocator,
                project_id=project.id,
                doc_type=DocumentType.INVOICE,
                payload={"gross_total": 50.0},
                today=date(2025, 9, 1),
            )

    async with session_factory() as session:
        async with session.begin():
            paid = await mark_project_paid(session, actor=ACTOR, project_id=project.id)

    assert paid.status == ProjectStatus.PAID
    assert paid.paid_at is not None
