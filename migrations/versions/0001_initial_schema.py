"""Initial schema: novels, chapters, cache_entries

Revision ID: 0001
Revises: None
Create Date: 2026-10-19 00:00:00
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def _table_exists(name: str) -> bool:
    """Check whether a table already exists in the database."""
    conn = op.get_bind()
    result = conn.execute(
        sa.text("SELECT 1 FROM sqlite_master WHERE type='table' AND name=:n"),
        {"n": name},
    )
    return result.fetchone() is not None


def upgrade() -> None:
    # Guarded so databases created by init_db() (create_all) can be stamped
    # and upgraded without errors.

    if not _table_exists("novels"):
        op.create_table(
            "novels",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("plugin_id", sa.String(), nullable=False),
            sa.Column("path", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("cover", sa.String(), nullable=True),
            sa.Column("summary", sa.String(), nullable=True),
            sa.Column("author", sa.String(), nullable=True),
            sa.Column("artist", sa.String(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("genres", sa.String(), nullable=True),
            sa.Column("total_pages", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("in_library", sa.Boolean(), nullable=False, server_default="0"),
            sa.Column("is_local", sa.Boolean(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("plugin_id", "path", name="uq_novel_plugin_path"),
        )
        op.create_index("ix_novels_plugin_id", "novels", ["plugin_id"])

    if not _table_exists("chapters"):
        op.create_table(
            "chapters",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("novel_id", sa.Integer(), sa.ForeignKey("novels.id"), nullable=False),
            sa.Column("path", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("release_time", sa.String(), nullable=True),
            sa.Column("chapter_number", sa.Float(), nullable=True),
            sa.Column("page", sa.String(), nullable=False, server_default="1"),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("updated_time", sa.DateTime(), nullable=True),
            sa.Column("bookmark", sa.Boolean(), nullable=False, server_default="0"),
            sa.Column("unread", sa.Boolean(), nullable=False, server_default="1"),
            sa.Column("read_time", sa.DateTime(), nullable=True),
            sa.Column("is_downloaded", sa.Boolean(), nullable=False, server_default="0"),
            sa.Column("progress", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("novel_id", "path", name="uq_chapter_novel_path"),
        )
        op.create_index("ix_chapters_novel_id", "chapters", ["novel_id"])

    if not _table_exists("cache_entries"):
        op.create_table(
            "cache_entries",
            sa.Column("key", sa.String(), primary_key=True),
            sa.Column("value", sa.String(), nullable=False),
        )


def downgrade() -> None:
    # Reverse FK order: chapters → novels.
    op.drop_table("cache_entries")
    op.drop_table("chapters")
    op.drop_table("novels")
