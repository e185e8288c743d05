from __future__ import annotations

import sys
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import salesdocs.models  # noqa: E402,F401
from salesdocs.core.config import get_settings  # noqa: E402
from salesdocs.models.base import Base  # noqa: E402
from salesdocs.models.project import Project  # noqa: E402
from salesdocs.services.numbering import SequenceAllocator  # noqa: E402


@compiles(JSONB, "sqlite")
def _compile_jsonb_for_sqlite(_type, _compiler, **_kw) -> str:
    # Test suite uses SQLite; map PostgreSQL JSONB to JSON for portable DDL.
    return "JSON"


@pytest_asyncio.fixture
async def db_engine(tmp_path, monkeypatch) -> AsyncIterator[AsyncEngine]:
    db_path = tmp_path / "test.db"
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("APP_STORAGE_DIR", str(storage_dir))
    monkeypatch.setenv("BASIC_AUTH_USERNAME", "test-user")
    monkeypatch.setenv("BASIC_AUTH_PASSWORD", "test-pass")
    monkeypatch.setenv("NUMBERING_SEASON_START_MONTH", "1")
    # Empty string -> normalized to None => numbers follow the calendar year.
    monkeypatch.setenv("NUMBERING_YEAR_OVERRIDE", "")
    monkeypatch.setenv("CORS_ORIGINS", "")
    get_settings.cache_clear()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", future=True)

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def allocator(session_factory: async_sessionmaker[AsyncSession]) -> SequenceAllocator:
    return SequenceAllocator(session_factory)


@pytest_asyncio.fixture
async def project(session_factory: async_sessionmaker[AsyncSession]) -> Project:
    # Committed up front: allocation runs on its own connection and must not wait on this one.
    async with session_factory() as session:
        async with session.begin():
            p = Project(name="Lieferung Frühjahr", customer_name="Gärtnerei Huber", season_year=2025)
            session.add(p)
    return p


@pytest.fixture(autouse=True)
def rendered_pdfs(monkeypatch) -> list[dict]:
    """Replaces WeasyPrint rendering with a stub that writes a placeholder file and records the context."""
    contexts: list[dict] = []

    def fake_render_pdf(*, output_path: Path, context: dict, **_kwargs) -> None:
        contexts.append(context)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"%PDF-1.7 test")

    monkeypatch.setattr("salesdocs.services.artifacts.render_pdf", fake_render_pdf)
    return contexts
