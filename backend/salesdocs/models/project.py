from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from salesdocs.core.enums import ProjectStatus
from salesdocs.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from salesdocs.models.sql_enums import project_status_enum


class Project(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    season_year: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    status: Mapped[ProjectStatus] = mapped_column(
        project_status_enum, nullable=False, default=ProjectStatus.QUOTATION, index=True
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
