from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.database import as_utc


class RuleFinding(BaseModel):
    """One rubric rule evaluation; semantics belong to the rubric, not to the pipeline."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    rule_id: str = Field(alias="ruleId")
    ok: bool
    note: str = ""


class RubricReport(BaseModel):
    # Unknown keys are kept so the stored report is lossless
    model_config = ConfigDict(extra="allow")

    score: float = Field(ge=0, le=100)
    summary: str
    findings: list[RuleFinding]
    suggestions: list[str]


class AnalyzeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    analysis_id: str = Field(alias="analysisId")
    score: float
    qualifies_for_publish: bool = Field(alias="qualifiesForPublish")


class PublishMetadata(BaseModel):
    """Target metadata for the publishing provider; empty fields fall back to defaults."""
    title: str | None = None
    description: str | None = None
    privacy_status: str | None = None  # public | unlisted | private
    tags: list[str] = []
    category_id: str | None = None


class PublishResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    analysis_id: str = Field(alias="analysisId")
    publish_link: str = Field(alias="publishLink")
    publish_remote_id: str = Field(alias="publishRemoteId")


class AnalysisJobView(BaseModel):
    """Ledger document as external readers see it (GET /analyses/{id})."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: str
    status: str
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    file_name: str | None = Field(default=None, alias="fileName")
    file_size: int | None = Field(default=None, alias="fileSize")
    mime_type: str | None = Field(default=None, alias="mimeType")
    result: dict | None = None
    error: str | None = None
    qualifies_for_publish: bool | None = Field(default=None, alias="qualifiesForPublish")
    score_threshold: float | None = Field(default=None, alias="scoreThreshold")
    publish_status: str = Field(alias="publishStatus")
    publish_link: str | None = Field(default=None, alias="publishLink")
    publish_remote_id: str | None = Field(default=None, alias="publishRemoteId")
    publish_error: str | None = Field(default=None, alias="publishError")

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)
