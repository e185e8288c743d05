"""initial sales documents schema

Revision ID: 4a1d2c8e7b30
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "4a1d2c8e7b30"
down_revision = None
branch_labels = None
depends_on = None


ENUM_VALUES: dict[str, tuple[str, ...]] = {
    "document_type": ("QUOTATION", "ORDER_CONFIRMATION", "DELIVERY_NOTE", "INVOICE", "PROFORMA_INVOICE"),
    "number_series": (
        "QUOTATION",
        "ORDER_CONFIRMATION",
        "DELIVERY_NOTE",
        "INVOICE",
        "PROFORMA_INVOICE",
        "REVERSAL",
    ),
    "document_state": ("DRAFT", "FINAL", "SUPERSEDED", "REVERSED"),
    "project_status": (
        "QUOTATION",
        "QUOTATION_SENT",
        "ORDER_CONFIRMATION",
        "DELIVERY_NOTE",
        "INVOICE",
        "PAID",
        "LOST",
    ),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUM_VALUES[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    for name, values in ENUM_VALUES.items():
        labels = ", ".join(f"'{v}'" for v in values)
        op.execute(
            "DO $$ BEGIN "
            f"CREATE TYPE {name} AS ENUM ({labels}); "
            "EXCEPTION WHEN duplicate_object THEN null; "
            "END $$;"
        )

    op.create_table(
        "projects",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("customer_name", sa.String(length=200), nullable=False),
        sa.Column("season_year", sa.Integer(), nullable=True),
        sa.Column("status", _enum("project_status"), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_projects_season_year"), "projects", ["season_year"])
    op.create_index(op.f("ix_projects_status"), "projects", ["status"])

    op.create_table(
        "sequence_counters",
        sa.Column("series", _enum("number_series"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("counter_value", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("series", "year", name="pk_sequence_counters"),
    )

    op.create_table(
        "document_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("doc_type", _enum("document_type"), nullable=False),
        sa.Column("document_number", sa.String(length=64), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.Column("lifecycle_state", _enum("document_state"), nullable=False),
        sa.Column("payload_snapshot", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("artifact_path", sa.String(length=500), nullable=False),
        sa.Column(
            "supersedes_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("document_records.id"),
            nullable=True,
            unique=True,
        ),
        sa.Column(
            "reversal_of_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("document_records.id"),
            nullable=True,
            unique=True,
        ),
        sa.Column("reversal_reason", sa.Text(), nullable=True),
        sa.Column("reversed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("doc_type", "document_number", "version", name="uq_document_records_number_version"),
    )
    op.create_index(op.f("ix_document_records_project_id"), "document_records", ["project_id"])
    op.create_index(op.f("ix_document_records_document_number"), "document_records", ["document_number"])

    op.create_table(
        "document_drafts",
        sa.Column(
            "project_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("doc_type", _enum("document_type"), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("project_id", "doc_type", name="pk_document_drafts"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor", sa.String(length=200), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("document_drafts")
    op.drop_index(op.f("ix_document_records_document_number"), table_name="document_records")
    op.drop_index(op.f("ix_document_records_project_id"), table_name="document_records")
    op.drop_table("document_records")
    op.drop_table("sequence_counters")
    op.drop_index(op.f("ix_projects_status"), table_name="projects")
    op.drop_index(op.f("ix_projects_season_year"), table_name="projects")
    op.drop_table("projects")
    for name in reversed(list(ENUM_VALUES)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
