from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from salesdocs.core.enums import ProjectStatus, StatusDecision


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    customer_name: str = Field(min_length=1, max_length=200)
    season_year: int | None = Field(default=None, ge=2000, le=2100)


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    customer_name: str
    season_year: int | None
    status: ProjectStatus
    paid_at: datetime | None
    created_at: datetime
    updated_at: datetime


class StatusProposalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: UUID
    from_status: ProjectStatus
    to_status: ProjectStatus


class StatusConfirm(BaseModel):
    from_status: ProjectStatus
    to_status: ProjectStatus
    decision: StatusDecision


class StatusApply(BaseModel):
    target: ProjectStatus
