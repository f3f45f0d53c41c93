"""create catalog, csv import pipeline, production fact and aggregate tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.text("now()"),
    )


def upgrade() -> None:
    # ---------------------------------------------------------------------------
    # Catalog: states, categories, statistics
    # ---------------------------------------------------------------------------
    op.create_table(
        "states",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("abbreviation", sa.String(length=8), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("abbreviation"),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "statistics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "ra_number",
            sa.String(length=32),
            nullable=True,
            comment="External reference number, e.g. 1001",
        ),
        sa.Column("unit", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("category_id", "name", name="uq_statistics_category_name"),
    )
    op.create_index("ix_statistics_category_id", "statistics", ["category_id"])

    # ---------------------------------------------------------------------------
    # csv_import_templates
    # ---------------------------------------------------------------------------
    op.create_table(
        "csv_import_templates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "kind",
            sa.String(length=32),
            nullable=False,
            comment="multi_category, single_category, legacy_export",
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("template_schema", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("sample_data", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    # ---------------------------------------------------------------------------
    # import_sessions
    # Created before csv_imports, which references the publishing session.
    # ---------------------------------------------------------------------------
    op.create_table(
        "import_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("data_year", sa.Integer(), nullable=True),
        sa.Column("record_count", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        _timestamp("import_date"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_import_sessions_is_active", "import_sessions", ["is_active"])

    # ---------------------------------------------------------------------------
    # csv_imports
    # ---------------------------------------------------------------------------
    op.create_table(
        "csv_imports",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column(
            "file_hash",
            sa.String(length=64),
            nullable=False,
            comment="SHA-256 of normalized file content",
        ),
        sa.Column("template_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("uploaded_by", sa.Integer(), nullable=False),
        _timestamp("uploaded_at"),
        _timestamp("validated_at", nullable=True),
        _timestamp("published_at", nullable=True),
        sa.Column("published_by", sa.Integer(), nullable=True),
        _timestamp("rolled_back_at", nullable=True),
        sa.Column("rolled_back_by", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("validation_summary", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("duplicate_of", sa.Integer(), nullable=True),
        sa.Column(
            "import_session_id",
            sa.Integer(),
            nullable=True,
            comment="Production session created when this attempt was published",
        ),
        sa.Column("total_rows", sa.Integer(), nullable=True),
        sa.Column("valid_rows", sa.Integer(), nullable=True),
        sa.Column("error_rows", sa.Integer(), nullable=True),
        sa.Column("processing_time_ms", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["template_id"], ["csv_import_templates.id"]),
        sa.ForeignKeyConstraint(["duplicate_of"], ["csv_imports.id"]),
        sa.ForeignKeyConstraint(["import_session_id"], ["import_sessions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_csv_imports_file_hash", "csv_imports", ["file_hash"])
    op.create_index("ix_csv_imports_status", "csv_imports", ["status"])
    op.create_index(
        "ix_csv_imports_file_hash_uploaded_at",
        "csv_imports",
        ["file_hash", "uploaded_at"],
    )

    # ---------------------------------------------------------------------------
    # csv_import_staging
    # FK → csv_imports.id ON DELETE CASCADE
    # ---------------------------------------------------------------------------
    op.create_table(
        "csv_import_staging",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("csv_import_id", sa.Integer(), nullable=False),
        sa.Column(
            "row_number",
            sa.Integer(),
            nullable=False,
            comment="Original CSV line number (header is line 1)",
        ),
        sa.Column("state_name", sa.String(length=120), nullable=True),
        sa.Column("state_id", sa.Integer(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("category_name", sa.String(length=120), nullable=True),
        sa.Column("statistic_name", sa.String(length=255), nullable=True),
        sa.Column("statistic_id", sa.Integer(), nullable=True),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("raw_data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("validation_status", sa.String(length=16), nullable=False),
        sa.Column("validation_errors", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("is_processed", sa.Boolean(), nullable=False),
        _timestamp("processed_at", nullable=True),
        sa.ForeignKeyConstraint(["csv_import_id"], ["csv_imports.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["state_id"], ["states.id"]),
        sa.ForeignKeyConstraint(["statistic_id"], ["statistics.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_csv_import_staging_import", "csv_import_staging", ["csv_import_id"])
    op.create_index(
        "ix_csv_import_staging_import_row",
        "csv_import_staging",
        ["csv_import_id", "row_number"],
    )

    # ---------------------------------------------------------------------------
    # data_points
    # ---------------------------------------------------------------------------
    op.create_table(
        "data_points",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("import_session_id", sa.Integer(), nullable=False),
        sa.Column("state_id", sa.Integer(), nullable=False),
        sa.Column("statistic_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["import_session_id"], ["import_sessions.id"]),
        sa.ForeignKeyConstraint(["state_id"], ["states.id"]),
        sa.ForeignKeyConstraint(["statistic_id"], ["statistics.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_data_points_import_session_id", "data_points", ["import_session_id"])
    op.create_index(
        "ix_data_points_state_statistic_year",
        "data_points",
        ["state_id", "statistic_id", "year"],
    )
    op.create_index("ix_data_points_statistic_year", "data_points", ["statistic_id", "year"])

    # ---------------------------------------------------------------------------
    # import_logs
    # FK → csv_imports.id ON DELETE CASCADE
    # ---------------------------------------------------------------------------
    op.create_table(
        "import_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("csv_import_id", sa.Integer(), nullable=False),
        sa.Column("log_level", sa.String(length=32), nullable=False),
        sa.Column("row_number", sa.Integer(), nullable=True),
        sa.Column("field_name", sa.String(length=64), nullable=True),
        sa.Column("field_value", sa.Text(), nullable=True),
        sa.Column("failure_category", sa.String(length=32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["csv_import_id"], ["csv_imports.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_import_logs_csv_import_id", "import_logs", ["csv_import_id"])
    op.create_index(
        "ix_import_logs_csv_import_level",
        "import_logs",
        ["csv_import_id", "log_level"],
    )

    # ---------------------------------------------------------------------------
    # national_averages
    # ---------------------------------------------------------------------------
    op.create_table(
        "national_averages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("statistic_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column(
            "state_count",
            sa.Integer(),
            nullable=False,
            comment="Number of states included in the calculation",
        ),
        sa.Column("calculation_method", sa.String(length=32), nullable=False),
        _timestamp("last_calculated"),
        sa.ForeignKeyConstraint(["statistic_id"], ["statistics.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("statistic_id", "year", name="uq_national_averages_statistic_year"),
    )


def downgrade() -> None:
    op.drop_table("national_averages")
    op.drop_index("ix_import_logs_csv_import_level", table_name="import_logs")
    op.drop_index("ix_import_logs_csv_import_id", table_name="import_logs")
    op.drop_table("import_logs")
    op.drop_index("ix_data_points_statistic_year", table_name="data_points")
    op.drop_index("ix_data_points_state_statistic_year", table_name="data_points")
    op.drop_index("ix_data_points_import_session_id", table_name="data_points")
    op.drop_table("data_points")
    op.drop_index("ix_csv_import_staging_import_row", table_name="csv_import_staging")
    op.drop_index("ix_csv_import_staging_import", table_name="csv_import_staging")
    op.drop_table("csv_import_staging")
    op.drop_index("ix_csv_imports_file_hash_uploaded_at", table_name="csv_imports")
    op.drop_index("ix_csv_imports_status", table_name="csv_imports")
    op.drop_index("ix_csv_imports_file_hash", table_name="csv_imports")
    op.drop_table("csv_imports")
    op.drop_index("ix_import_sessions_is_active", table_name="import_sessions")
    op.drop_table("import_sessions")
    op.drop_table("csv_import_templates")
    op.drop_index("ix_statistics_category_id", table_name="statistics")
    op.drop_table("statistics")
    op.drop_table("categories")
    op.drop_table("states")
