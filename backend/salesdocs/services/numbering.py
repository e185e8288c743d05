from __future__ import annotations

import logging
import random
import time
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from salesdocs.core.config import Settings, get_settings
from salesdocs.core.enums import DocumentType, NumberSeries
from salesdocs.core.errors import AllocationExhausted
from salesdocs.models.document_record import DocumentRecord
from salesdocs.models.sequence_counter import SequenceCounter


logger = logging.getLogger(__name__)

FALLBACK_MARKER = "TEMP"


def series_prefix(series: NumberSeries) -> str:
    match series:
        case NumberSeries.QUOTATION:
            return "ANG"
        case NumberSeries.ORDER_CONFIRMATION:
            return "AB"
        case NumberSeries.DELIVERY_NOTE:
            return "LS"
        case NumberSeries.INVOICE:
            return "RE"
        case NumberSeries.PROFORMA_INVOICE:
            return "PRO"
        case NumberSeries.REVERSAL:
            return "STORNO"
    return "DOK"


def series_for(doc_type: DocumentType) -> NumberSeries:
    return NumberSeries(doc_type.value)


def series_document_type(series: NumberSeries) -> DocumentType:
    # Reversal records are invoice records with their own number range.
    if series == NumberSeries.REVERSAL:
        return DocumentType.INVOICE
    return DocumentType(series.value)


def allocation_year(today: date, *, season_start_month: int = 1, year_override: int | None = None) -> int:
    """
    Year component for new numbers.

    With the default start month of 1 this is the calendar year. A later start month
    makes the trailing months count towards the next season, e.g. with 11 the
    numbers issued in November 2025 already carry 2026.
    """
    if year_override is not None:
        return year_override
    if season_start_month > 1 and today.month >= season_start_month:
        return today.year + 1
    return today.year


def format_document_number(series: NumberSeries, year: int, counter_value: int) -> str:
    # 4-digit padding widens on its own once a series passes 9999.
    return f"{series_prefix(series)}-{year}-{counter_value:04d}"


def fallback_document_number(series: NumberSeries, year: int, *, now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{series_prefix(series)}-{year}-{FALLBACK_MARKER}-{now_ms}-{random.randint(0, 999):03d}"


def is_fallback_number(number: str) -> bool:
    parts = number.split("-")
    return len(parts) >= 5 and parts[2] == FALLBACK_MARKER


async def number_exists(
    session: AsyncSession,
    *,
    number: str,
    doc_type: DocumentType,
    excluding_project_id: uuid.UUID | None = None,
) -> bool:
    number = (number or "").strip()
    if not number:
        return False

    stmt = select(DocumentRecord.id).where(
        DocumentRecord.doc_type == doc_type,
        DocumentRecord.document_number == number,
    )
    if excluding_project_id is not None:
        stmt = stmt.where(DocumentRecord.project_id != excluding_project_id)
    return (await session.execute(stmt.limit(1))).first() is not None


@dataclass(frozen=True)
class CounterState:
    series: NumberSeries
    year: int
    counter_value: int


class SequenceAllocator:
    """
    Hands out `PREFIX-YYYY-NNNN` numbers per number series and allocation year.

    Each allocation runs in its own short transaction, independent of the caller's
    session, so a number is either committed to its counter or never returned.
    The counter advance is a compare-and-set; a concurrent winner makes the loser
    re-read and try the next value. When the attempt budget is spent or the store
    fails, a `-TEMP-` fallback number is returned instead of raising.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_attempts: int = 100,
        season_start_month: int = 1,
        year_override: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.max_attempts = max_attempts
        self.season_start_month = season_start_month
        self.year_override = year_override

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
    ) -> SequenceAllocator:
        settings = settings or get_settings()
        return cls(
            session_factory,
            max_attempts=settings.numbering_max_attempts,
            season_start_month=settings.numbering_season_start_month,
            year_override=settings.numbering_year_override,
        )

    def current_year(self, today: date | None = None) -> int:
        return allocation_year(
            today or date.today(),
            season_start_month=self.season_start_month,
            year_override=self.year_override,
        )

    async def allocate(self, series: NumberSeries, *, today: date | None = None) -> str:
        year = self.current_year(today)
        try:
            await self._ensure_counter(series, year)
            return await self._allocate_sequential(series, year)
        except AllocationExhausted as e:
            logger.warning("%s", e, extra={"series": series.value, "year": year})
        except (SQLAlchemyError, OSError):
            logger.exception("Counter store unavailable for %s/%s", series.value, year)

        number = fallback_document_number(series, year)
        logger.warning("Issued fallback document number %s", number, extra={"series": series.value, "year": year})
        return number

    async def number_exists(
        self,
        number: str,
        doc_type: DocumentType,
        *,
        excluding_project_id: uuid.UUID | None = None,
    ) -> bool:
        async with self._session_factory() as session:
            exists = await number_exists(
                session,
                number=number,
                doc_type=doc_type,
                excluding_project_id=excluding_project_id,
            )
        if exists:
            logger.info("Document number %s already in use", number.strip(), extra={"doc_type": doc_type.value})
        return exists

    async def counter_states(self, *, year: int | None = None) -> list[CounterState]:
        year = year if year is not None else self.current_year()
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(SequenceCounter.series, SequenceCounter.counter_value).where(SequenceCounter.year == year)
                )
            ).all()
        by_series = {r.series: int(r.counter_value) for r in rows}
        return [CounterState(series=s, year=year, counter_value=by_series.get(s, 0)) for s in NumberSeries]

    async def _ensure_counter(self, series: NumberSeries, year: int) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                existing = await session.scalar(
                    select(SequenceCounter.counter_value).where(
                        SequenceCounter.series == series, SequenceCounter.year == year
                    )
                )
                if existing is not None:
                    return
                # A new year starts every series at 0; concurrent creators race on the primary key.
                await session.execute(
                    text(
                        "INSERT INTO sequence_counters (series, year, counter_value) "
                        "VALUES (:series, :year, 0) "
                        "ON CONFLICT (series, year) DO NOTHING"
                    ),
                    {"series": series.value, "year": year},
                )

    async def _allocate_sequential(self, series: NumberSeries, year: int) -> str:
        doc_type = series_document_type(series)
        async with self._session_factory() as session:
            async with session.begin():
                stored = await self._read_counter(session, series, year)
                candidate = stored
                for attempt in range(1, self.max_attempts + 1):
                    candidate += 1
                    number = format_document_number(series, year, candidate)

                    if await number_exists(session, number=number, doc_type=doc_type):
                        logger.warning("Document number %s already exists, trying the next one", number)
                        continue

                    if await self._compare_and_set(session, series, year, expected=stored, new_value=candidate):
                        logger.info(
                            "Allocated document number %s",
                            number,
                            extra={"series": series.value, "year": year, "attempt": attempt},
                        )
                        return number

                    # Another allocator advanced the counter in between.
                    stored = await self._read_counter(session, series, year)
                    candidate = stored

        raise AllocationExhausted(
            f"Could not find a free {series.value} number for {year} after {self.max_attempts} attempts"
        )

    async def _read_counter(self, session: AsyncSession, series: NumberSeries, year: int) -> int:
        value = await session.scalar(
            select(SequenceCounter.counter_value)
            .where(SequenceCounter.series == series, SequenceCounter.year == year)
            .with_for_update()
        )
        return int(value or 0)

    async def _compare_and_set(
        self,
        session: AsyncSession,
        series: NumberSeries,
        year: int,
        *,
        expected: int,
        new_value: int,
    ) -> bool:
        result = await session.execute(
            update(SequenceCounter)
            .where(
                SequenceCounter.series == series,
                SequenceCounter.year == year,
                SequenceCounter.counter_value == expected,
            )
            .values(counter_value=new_value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
