"""analysis ledger and error log

Creates analysis_jobs (status ledger) and error_logs.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


revision: str = "0001_analysis_jobs"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "analysis_jobs",
        sa.Column("id", sa.String(length=200), primary_key=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("file_name", sa.String(), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(), nullable=True),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.Column("error", sa.String(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("qualifies_for_publish", sa.Boolean(), nullable=True),
        sa.Column("score_threshold", sa.Float(), nullable=True),
        sa.Column("publish_status", sa.String(), nullable=False),
        sa.Column("publish_link", sa.String(), nullable=True),
        sa.Column("publish_remote_id", sa.String(), nullable=True),
        sa.Column("publish_error", sa.String(), nullable=True),
    )
    op.create_index("ix_analysis_jobs_status", "analysis_jobs", ["status"])

    op.create_table(
        "error_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("request_id", sa.String(), nullable=True),
        sa.Column("analysis_id", sa.String(), nullable=True),
        sa.Column("endpoint", sa.String(), nullable=True),
        sa.Column("method", sa.String(), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("stack_trace", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_error_logs_request_id", "error_logs", ["request_id"])
    op.create_index("ix_error_logs_analysis_id", "error_logs", ["analysis_id"])


def downgrade() -> None:
    op.drop_index("ix_error_logs_analysis_id", table_name="error_logs")
    op.drop_index("ix_error_logs_request_id", table_name="error_logs")
    op.drop_table("error_logs")
    op.drop_index("ix_analysis_jobs_status", table_name="analysis_jobs")
    op.drop_table("analysis_jobs")
