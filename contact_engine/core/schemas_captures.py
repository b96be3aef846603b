"""Pydantic schemas for capture (ingestion job) records."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

CaptureStatus = Literal["queued", "processing", "researching", "ready", "error"]


class Capture(BaseModel):
    """One ingestion job turning pasted input into a draft contact."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    owner_id: str
    workspace_id: str | None = None
    member_ids: list[str] = Field(default_factory=list)
    text: str = ""
    image_paths: list[str] = Field(default_factory=list)
    status: CaptureStatus = "queued"
    error: str | None = None
    result_contact_id: str | None = None
    raw_extraction: dict[str, Any] | None = None
    deep_research_requested: bool = False
    created_at: str | None = None
    updated_at: str | None = None
    images_deleted_at: str | None = None

    @field_validator("image_paths", "member_ids", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("text", mode="before")
    @classmethod
    def none_to_blank(cls, v: Any) -> Any:
        return "" if v is None else v


class CaptureSubmitResponse(BaseModel):
    """Response for a quick-capture submission."""

    capture_id: str
    image_paths: list[str]
    status: CaptureStatus
