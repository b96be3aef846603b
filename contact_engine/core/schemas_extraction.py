"""Pydantic schemas for model output: extraction, enrichment and link curation.

Models answer in camelCase; snake_case keys are accepted too. Every field is
optional so a partially wrong completion still validates, and the values are
coerced to the canonical types downstream code expects.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from contact_engine.core.schemas_contacts import clean_tags


class ModelOutput(BaseModel):
    """Base for tolerant model-output schemas."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _coerce_optional_str(v: Any) -> str | None:
    if v is None:
        return None
    if isinstance(v, str):
        return v
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return None


class RawSocialFollower(ModelOutput):
    """Follower entry as emitted by the model; normalized in social_followers."""

    platform: str | None = None
    count: Any = None
    label: str | None = None
    url: str | None = None
    handle: str | None = None
    metric: str | None = None

    @field_validator("platform", "label", "url", "handle", "metric", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _coerce_optional_str(v)


class RawLink(ModelOutput):
    """Link entry as emitted by the model; validated by the link curator."""

    label: str | None = None
    url: str | None = None

    @field_validator("label", "url", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _coerce_optional_str(v)


class ContactFields(ModelOutput):
    """Identity fields shared by the extraction contact and enrichment patch."""

    full_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    job_title: str | None = None
    company_name: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = Field(default=None, alias="linkedInUrl")
    website: str | None = None
    location: str | None = None
    notes: str | None = None
    tags: list[str] | None = None

    @field_validator(
        "full_name",
        "first_name",
        "last_name",
        "job_title",
        "company_name",
        "email",
        "phone",
        "linkedin_url",
        "website",
        "location",
        "notes",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        return _coerce_optional_str(v)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> list[str] | None:
        """Accept a list or a comma-separated string."""
        if v is None:
            return None
        if isinstance(v, str):
            return clean_tags(v.split(","))
        return clean_tags(v)


class ExtractedContact(ContactFields):
    """Contact block of the extraction pass."""

    social_followers: list[RawSocialFollower] | None = None

    @field_validator("social_followers", mode="before")
    @classmethod
    def drop_non_objects(cls, v: Any) -> list[Any] | None:
        if not isinstance(v, list):
            return None
        return [item for item in v if isinstance(item, dict)]


class ContactExtraction(ModelOutput):
    """Complete output of the extraction pass."""

    contact: ExtractedContact = Field(default_factory=ExtractedContact)
    confidence_by_field: dict[str, float] = Field(default_factory=dict)
    evidence: dict[str, str] = Field(default_factory=dict)

    @field_validator("contact", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("confidence_by_field", mode="before")
    @classmethod
    def keep_numeric_confidences(cls, v: Any) -> dict[str, float]:
        if not isinstance(v, dict):
            return {}
        out: dict[str, float] = {}
        for key, value in v.items():
            try:
                out[str(key)] = float(value)
            except (TypeError, ValueError):
                continue
        return out

    @field_validator("evidence", mode="before")
    @classmethod
    def keep_text_evidence(cls, v: Any) -> dict[str, str]:
        if not isinstance(v, dict):
            return {}
        return {str(k): str(val) for k, val in v.items() if val is not None}


class ContactEnrichment(ModelOutput):
    """Complete output of the enrichment pass run after deep research."""

    contact_patch: ContactFields = Field(default_factory=ContactFields)
    summary: str | None = None
    # Flat key/value fields shown as-is (Education, GitHub, Crunchbase, ...)
    research_fields: dict[str, str | None] = Field(default_factory=dict)
    social_followers: list[RawSocialFollower] = Field(default_factory=list)
    extra_links: list[RawLink] = Field(default_factory=list)

    @field_validator("contact_patch", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("summary", mode="before")
    @classmethod
    def coerce_summary(cls, v: Any) -> str | None:
        return _coerce_optional_str(v)

    @field_validator("research_fields", mode="before")
    @classmethod
    def flatten_research_fields(cls, v: Any) -> dict[str, str | None]:
        if not isinstance(v, dict):
            return {}
        out: dict[str, str | None] = {}
        for key, value in v.items():
            if value is None:
                out[str(key)] = None
            elif isinstance(value, (list, tuple)):
                out[str(key)] = ", ".join(str(item) for item in value)
            else:
                out[str(key)] = str(value)
        return out

    @field_validator("social_followers", "extra_links", mode="before")
    @classmethod
    def drop_non_objects(cls, v: Any) -> list[Any]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]


class CuratedLinks(ModelOutput):
    """Output of the link-ranking call."""

    links: list[RawLink] = Field(default_factory=list)

    @field_validator("links", mode="before")
    @classmethod
    def drop_non_objects(cls, v: Any) -> list[Any]:
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict)]


# Strict structured-output schema for the ranking call
CURATED_LINKS_JSON_SCHEMA: dict[str, Any] = {
    "name": "curated_links",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "links": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "label": {"type": "string"},
                        "url": {"type": "string"},
                    },
                    "required": ["label", "url"],
                    "additionalProperties": False,
                },
            },
        },
        "required": ["links"],
        "additionalProperties": False,
    },
}
