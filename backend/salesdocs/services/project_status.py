from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from salesdocs.core.enums import DocumentType, ProjectStatus, StatusDecision
from salesdocs.core.errors import IllegalStateTransition, NotFound
from salesdocs.models.base import utcnow
from salesdocs.models.project import Project
from salesdocs.services.audit import audit_log
from salesdocs.services.documents import load_current


logger = logging.getLogger(__name__)

PIPELINE: tuple[ProjectStatus, ...] = (
    ProjectStatus.QUOTATION,
    ProjectStatus.QUOTATION_SENT,
    ProjectStatus.ORDER_CONFIRMATION,
    ProjectStatus.DELIVERY_NOTE,
    ProjectStatus.INVOICE,
    ProjectStatus.PAID,
)

PROPOSED_STATUS_BY_DOCUMENT: dict[DocumentType, ProjectStatus | None] = {
    DocumentType.QUOTATION: ProjectStatus.QUOTATION_SENT,
    # A confirmed order moves straight on to delivery.
    DocumentType.ORDER_CONFIRMATION: ProjectStatus.DELIVERY_NOTE,
    DocumentType.DELIVERY_NOTE: ProjectStatus.INVOICE,
    DocumentType.INVOICE: ProjectStatus.INVOICE,
    DocumentType.PROFORMA_INVOICE: None,
}


def propose_status(doc_type: DocumentType) -> ProjectStatus | None:
    return PROPOSED_STATUS_BY_DOCUMENT.get(doc_type)


def pipeline_rank(status: ProjectStatus) -> int:
    if status == ProjectStatus.LOST:
        return len(PIPELINE)
    return PIPELINE.index(status)


@dataclass(frozen=True)
class StatusProposal:
    project_id: uuid.UUID
    from_status: ProjectStatus
    to_status: ProjectStatus


async def _get_project(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if project is None:
        raise NotFound(f"Project not found: {project_id}")
    return project


async def propose_transition(
    session: AsyncSession,
    *,
    project_id: uuid.UUID,
    doc_type: DocumentType,
) -> StatusProposal | None:
    project = await _get_project(session, project_id)
    target = propose_status(doc_type)
    if target is None or project.status == ProjectStatus.LOST:
        return None
    if pipeline_rank(project.status) >= pipeline_rank(target):
        return None
    return StatusProposal(project_id=project.id, from_status=project.status, to_status=target)


async def apply_transition(
    session: AsyncSession,
    *,
    actor: str,
    project_id: uuid.UUID,
    target: ProjectStatus,
) -> Project:
    project = await _get_project(session, project_id)
    if project.status == ProjectStatus.LOST and target != ProjectStatus.LOST:
        raise IllegalStateTransition("Lost projects cannot change status")
    if project.status == target:
        return project

    before = {"status": project.status}
    project.status = target
    await session.flush()

    await audit_log(
        session,
        actor=actor,
        entity_type="project",
        entity_id=project.id,
        action="status_change",
        before=before,
        after={"status": project.status},
    )
    logger.info(
        "Project status %s -> %s",
        before["status"].value,
        target.value,
        extra={"project_id": str(project.id)},
    )
    return project


async def confirm_and_apply(
    session: AsyncSession,
    *,
    actor: str,
    proposal: StatusProposal,
    decision: StatusDecision,
) -> Project:
    project = await _get_project(session, proposal.project_id)
    if decision == StatusDecision.ACCEPT_WITHOUT_TRANSITION:
        return project
    if project.status != proposal.from_status:
        raise IllegalStateTransition(
            f"Stale status proposal: project is {project.status}, proposal expected {proposal.from_status}"
        )
    return await apply_transition(session, actor=actor, project_id=project.id, target=proposal.to_status)


async def mark_project_paid(session: AsyncSession, *, actor: str, project_id: uuid.UUID) -> Project:
    project = await _get_project(session, project_id)
    if await load_current(session, project_id=project_id, doc_type=DocumentType.INVOICE) is None:
        raise IllegalStateTransition("Project has no active invoice")
    if project.status == ProjectStatus.PAID:
        return project

    project = await apply_transition(session, actor=actor, project_id=project_id, target=ProjectStatus.PAID)
    project.paid_at = utcnow()
    await session.flush()
    return project
