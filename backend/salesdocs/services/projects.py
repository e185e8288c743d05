from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from salesdocs.core.enums import ProjectStatus
from salesdocs.models.project import Project
from salesdocs.schemas.projects import ProjectCreate
from salesdocs.services.audit import audit_log


async def create_project(session: AsyncSession, *, actor: str, data: ProjectCreate) -> Project:
    project = Project(
        name=data.name.strip(),
        customer_name=data.customer_name.strip(),
        season_year=data.season_year,
        status=ProjectStatus.QUOTATION,
    )
    session.add(project)
    await session.flush()

    await audit_log(
        session,
        actor=actor,
        entity_type="project",
        entity_id=project.id,
        action="create",
        after={"name": project.name, "customer_name": project.customer_name, "status": project.status},
    )
    return project
