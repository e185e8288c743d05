from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salesdocs.api.deps import http_error
from salesdocs.core.db import get_session
from salesdocs.core.enums import DocumentType
from salesdocs.core.security import require_actor
from salesdocs.models.project import Project
from salesdocs.schemas.projects import ProjectCreate, ProjectOut, StatusApply, StatusConfirm, StatusProposalOut
from salesdocs.services.project_status import (
    StatusProposal,
    apply_transition,
    confirm_and_apply,
    mark_project_paid,
    propose_transition,
)
from salesdocs.services.projects import create_project


router = APIRouter()


@router.post("", response_model=ProjectOut)
async def create_project_endpoint(
    data: ProjectCreate,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_actor),
) -> ProjectOut:
    async with session.begin():
        project = await create_project(session, actor=actor, data=data)
    return ProjectOut.model_validate(project)


@router.get("", response_model=list[ProjectOut])
async def list_projects(session: AsyncSession = Depends(get_session)) -> list[ProjectOut]:
    rows = (await session.execute(select(Project).order_by(Project.created_at.desc()))).scalars().all()
    return [ProjectOut.model_validate(r) for r in rows]


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(project_id: uuid.UUID, session: AsyncSession = Depends(get_session)) -> ProjectOut:
    project = await session.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Not found")
    return ProjectOut.model_validate(project)


@router.get("/{project_id}/status/proposal", response_model=StatusProposalOut | None)
async def get_status_proposal(
    project_id: uuid.UUID,
    doc_type: DocumentType,
    session: AsyncSession = Depends(get_session),
) -> StatusProposalOut | None:
    try:
        proposal = await propose_transition(session, project_id=project_id, doc_type=doc_type)
    except ValueError as e:
        raise http_error(e) from e
    return StatusProposalOut.model_validate(proposal) if proposal is not None else None


@router.post("/{project_id}/status/confirm", response_model=ProjectOut)
async def confirm_status_endpoint(
    project_id: uuid.UUID,
    data: StatusConfirm,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_actor),
) -> ProjectOut:
    proposal = StatusProposal(project_id=project_id, from_status=data.from_status, to_status=data.to_status)
    try:
        async with session.begin():
            project = await confirm_and_apply(session, actor=actor, proposal=proposal, decision=data.decision)
    except ValueError as e:
        raise http_error(e) from e
    return ProjectOut.model_validate(project)


@router.post("/{project_id}/status/apply", response_model=ProjectOut)
async def apply_status_endpoint(
    project_id: uuid.UUID,
    data: StatusApply,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_actor),
) -> ProjectOut:
    try:
        async with session.begin():
            project = await apply_transition(session, actor=actor, project_id=project_id, target=data.target)
    except ValueError as e:
        raise http_error(e) from e
    return ProjectOut.model_validate(project)


@router.post("/{project_id}/mark-paid", response_model=ProjectOut)
async def mark_paid_endpoint(
    project_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_actor),
) -> ProjectOut:
    try:
        async with session.begin():
            project = await mark_project_paid(session, actor=actor, project_id=project_id)
    except ValueError as e:
        raise http_error(e) from e
    return ProjectOut.model_validate(project)
