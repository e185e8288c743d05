from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine

# Script entrypoint: ensure `backend/` is importable.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from salesdocs.core.enums import DocumentState, DocumentType, NumberSeries, ProjectStatus  # noqa: E402


EXPECTED_ENUMS: dict[str, list[str]] = {
    "document_type": [e.value for e in DocumentType],
    "number_series": [e.value for e in NumberSeries],
    "document_state": [e.value for e in DocumentState],
    "project_status": [e.value for e in ProjectStatus],
}

# Each query returns offending rows; an empty result means the invariant holds.
ROW_CHECKS: dict[str, str] = {
    "document number reused by another lineage": """
        SELECT doc_type, document_number
        FROM document_records
        GROUP BY doc_type, document_number
        HAVING count(DISTINCT project_id) > 1
    """,
    "more than one active record per project and type": """
        SELECT r.project_id, r.doc_type, count(*)
        FROM document_records r
        WHERE r.lifecycle_state = 'FINAL'
          AND r.reversal_of_id IS NULL
          AND r.doc_type <> 'PROFORMA_INVOICE'
          AND NOT EXISTS (SELECT 1 FROM document_records s WHERE s.supersedes_id = r.id)
        GROUP BY r.project_id, r.doc_type
        HAVING count(*) > 1
    """,
    "reversed invoice without reversal record": """
        SELECT r.document_number
        FROM document_records r
        WHERE r.lifecycle_state = 'REVERSED'
          AND NOT EXISTS (SELECT 1 FROM document_records s WHERE s.reversal_of_id = r.id)
    """,
    "reversed invoice without reason": """
        SELECT document_number
        FROM document_records
        WHERE lifecycle_state = 'REVERSED'
          AND (reversal_reason IS NULL OR trim(reversal_reason) = '')
    """,
    "version chain breaks number or type": """
        SELECT n.document_number, n.version
        FROM document_records n
        JOIN document_records o ON o.id = n.supersedes_id
        WHERE n.document_number <> o.document_number
           OR n.doc_type <> o.doc_type
           OR n.version <> o.version + 1
    """,
}


async def _check_enums(conn: AsyncConnection) -> list[str]:
    problems: list[str] = []
    for type_name, expected in EXPECTED_ENUMS.items():
        rows = (
            await conn.execute(
                text(
                    """
                    SELECT e.enumlabel
                    FROM pg_enum e
                    JOIN pg_type t ON t.oid = e.enumtypid
                    JOIN pg_namespace n ON n.oid = t.typnamespace
                    WHERE n.nspname = 'public' AND t.typname = :type_name
                    ORDER BY e.enumsortorder
                    """
                ),
                {"type_name": type_name},
            )
        ).all()
        actual = [r[0] for r in rows]
        missing = [v for v in expected if v not in actual]
        if missing:
            problems.append(f"Enum type '{type_name}' is missing values: {missing} (actual: {actual})")
    return problems


async def _check_rows(conn: AsyncConnection) -> list[str]:
    problems: list[str] = []
    for label, query in ROW_CHECKS.items():
        rows = (await conn.execute(text(query))).all()
        if rows:
            sample = ", ".join(str(tuple(r)) for r in rows[:5])
            problems.append(f"{label}: {len(rows)} row(s), e.g. {sample}")
    return problems


async def _main() -> int:
    url = os.environ.get("DATABASE_URL")
    if not url:
        print("DATABASE_URL is required.", file=sys.stderr)
        return 2

    engine = create_async_engine(url, pool_pre_ping=True)
    try:
        async with engine.connect() as conn:
            problems = []
            if conn.dialect.name == "postgresql":
                problems.extend(await _check_enums(conn))
            problems.extend(await _check_rows(conn))
    finally:
        await engine.dispose()

    if problems:
        for p in problems:
            print(p, file=sys.stderr)
        return 1

    print("DB invariants ok (enums, document numbers, active records, reversals, version chains).")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(_main()))
