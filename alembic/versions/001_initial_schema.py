"""Initial release QA schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    existing_tables = sa.inspect(conn).get_table_names()

    if "test_runs" in existing_tables:
        # Tables already exist, skip migration
        return

    op.create_table(
        "projects",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("site_url", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        "release_runs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("project_id", UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text),
        sa.Column("urls", JSONB, nullable=False, server_default="[]"),
        sa.Column("selected_tests", JSONB, nullable=False, server_default="[]"),
        sa.Column("enabled_optional_rules", JSONB),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        "test_runs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("project_id", UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("release_run_id", UUID(as_uuid=True), sa.ForeignKey("release_runs.id", ondelete="SET NULL")),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="QUEUED"),
        sa.Column("score", sa.Integer),
        sa.Column("error", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("started_at", sa.DateTime),
        sa.Column("finished_at", sa.DateTime),
        sa.Column("last_heartbeat", sa.DateTime),
    )
    op.create_index("idx_test_runs_status_created_at", "test_runs", ["status", "created_at"])
    op.create_index("idx_test_runs_status_heartbeat", "test_runs", ["status", "last_heartbeat"])

    op.create_table(
        "test_run_configs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "test_run_id",
            UUID(as_uuid=True),
            sa.ForeignKey("test_runs.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("scope", sa.String(16), nullable=False, server_default="CUSTOM_URLS"),
        sa.Column("urls", JSONB, nullable=False, server_default="[]"),
    )

    op.create_table(
        "url_results",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("test_run_id", UUID(as_uuid=True), sa.ForeignKey("test_runs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("viewport", sa.Text),
        sa.Column("score", sa.Integer),
        sa.Column("issue_count", sa.Integer, server_default="0"),
        sa.Column("metrics", JSONB),
        sa.Column("error", sa.Text),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_url_results_test_run_id", "url_results", ["test_run_id"])
    op.create_index("idx_url_results_url", "url_results", ["url"])

    op.create_table(
        "result_items",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("url_result_id", UUID(as_uuid=True), sa.ForeignKey("url_results.id", ondelete="CASCADE"), nullable=False),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("code", sa.Text, nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("status", sa.String(8), nullable=False),
        sa.Column("severity", sa.String(16)),
        sa.Column("meta", JSONB),
        sa.Column("ignored", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("idx_result_items_url_result_id", "result_items", ["url_result_id"])
    op.create_index("idx_result_items_code", "result_items", ["code"])

    op.create_table(
        "release_rule_categories",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text, nullable=False, unique=True),
        sa.Column("description", sa.Text),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "release_rules",
        sa.Column("code", sa.Text, primary_key=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column(
            "category_id",
            UUID(as_uuid=True),
            sa.ForeignKey("release_rule_categories.id", ondelete="RESTRICT"),
        ),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("severity", sa.String(16), nullable=False),
        sa.Column("impact", sa.Text),
        sa.Column("fix", sa.Text),
        sa.Column("doc_url", sa.Text),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("is_optional", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer, nullable=False, server_default="0"),
    )

    op.create_table(
        "ignored_rules",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("project_id", UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("code", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.UniqueConstraint("project_id", "url", "code", name="uq_ignored_rules_project_url_code"),
    )
    op.create_index("idx_ignored_rules_project_url", "ignored_rules", ["project_id", "url"])

    op.create_table(
        "project_optional_rules",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("project_id", UUID(as_uuid=True), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rule_code", sa.Text, nullable=False),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.UniqueConstraint("project_id", "rule_code", name="uq_project_optional_rules"),
    )

    op.create_table(
        "dictionary_words",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("word", sa.Text, nullable=False, unique=True),
        sa.Column("display_word", sa.Text, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("dictionary_words")
    op.drop_table("project_optional_rules")
    op.drop_table("ignored_rules")
    op.drop_table("release_rules")
    op.drop_table("release_rule_categories")
    op.drop_table("result_items")
    op.drop_table("url_results")
    op.drop_table("test_run_configs")
    op.drop_table("test_runs")
    op.drop_table("release_runs")
    op.drop_table("projects")
