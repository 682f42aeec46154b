"""Analysis ledger: processing -> done | error; publish sub-state alongside."""
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

JOB_PROCESSING = "processing"
JOB_DONE = "done"
JOB_ERROR = "error"

PUBLISH_NOT_APPLICABLE = "not_applicable"
PUBLISH_PENDING = "pending"
PUBLISH_UPLOADING = "uploading"
PUBLISH_UPLOADED = "uploaded"
PUBLISH_ERROR = "error"


class AnalysisJob(SQLModel, table=True):
    __tablename__ = "analysis_jobs"
    id: str = Field(primary_key=True, max_length=200)  # caller-supplied analysisId, not validated
    status: str = Field(default=JOB_PROCESSING, index=True)  # processing | done | error
    # Written timezone-aware (UTC)
    created_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    updated_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    # Metadata only; the payload itself is never stored
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    result: dict | None = Field(default=None, sa_column=Column(JSON))  # RubricReport, iff status=done
    error: str | None = None  # iff status=error
    duration_ms: int | None = None
    qualifies_for_publish: bool | None = None
    score_threshold: float | None = None
    publish_status: str = PUBLISH_NOT_APPLICABLE  # not_applicable | pending | uploading | uploaded | error
    publish_link: str | None = None
    publish_remote_id: str | None = None
    publish_error: str | None = None
