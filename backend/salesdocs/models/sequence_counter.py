from __future__ import annotations

from sqlalchemy import Integer, PrimaryKeyConstraint
from sqlalchemy.orm import Mapped, mapped_column

from salesdocs.core.enums import NumberSeries
from salesdocs.models.base import Base
from salesdocs.models.sql_enums import number_series_enum


class SequenceCounter(Base):
    """Last issued counter value per number series and allocation year (0 = nothing issued yet)."""

    __tablename__ = "sequence_counters"
    __table_args__ = (PrimaryKeyConstraint("series", "year", name="pk_sequence_counters"),)

    series: Mapped[NumberSeries] = mapped_column(number_series_enum, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    counter_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
