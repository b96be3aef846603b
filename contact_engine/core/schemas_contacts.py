"""Pydantic schemas for the canonical contact record."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SocialPlatform = Literal[
    "x",
    "twitter",
    "instagram",
    "linkedin",
    "youtube",
    "tiktok",
    "facebook",
    "threads",
    "github",
    "reddit",
    "pinterest",
    "twitch",
    "other",
]

SOCIAL_PLATFORMS: tuple[str, ...] = SocialPlatform.__args__

SocialFollowerMetric = Literal["followers", "subscribers"]

LeadStatus = Literal["not_sure", "cold", "warm", "hot", "customer"]

DeepResearchStatus = Literal["disabled", "queued", "running", "done", "error"]

PurchaseCadence = Literal["monthly", "yearly", "one_off"]
PurchaseStage = Literal["possible", "converted"]

# Scalar identity fields shared by extraction, merge and enrichment
IDENTITY_FIELDS: tuple[str, ...] = (
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
)


def clean_tags(values: Any) -> list[str]:
    """Trim, drop empties and de-duplicate tags, keeping first-seen order."""
    if not isinstance(values, (list, tuple, set)):
        return []
    trimmed = [str(v).strip() for v in values if v is not None]
    return list(dict.fromkeys(t for t in trimmed if t))


class SocialFollower(BaseModel):
    """Audience size on one social platform (canonical form)."""

    platform: SocialPlatform
    count: int = Field(..., ge=0)
    metric: SocialFollowerMetric | None = None
    label: str | None = None
    url: str | None = None
    handle: str | None = None


class ExtraLink(BaseModel):
    """A curated link shown on the contact."""

    label: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, v: str) -> str:
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("url must start with http:// or https://")
        return v


class SearchResult(BaseModel):
    """A citation returned by the research service."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    url: str | None = None
    date: str | None = None


class ResearchImage(BaseModel):
    """A research image persisted to the blob store."""

    storage_path: str
    source_url: str | None = None
    title: str | None = None


class ContactPurchase(BaseModel):
    """A purchase or subscription attached to a contact."""

    id: str
    stage: PurchaseStage
    cadence: PurchaseCadence
    name: str
    amount: float | None = None
    currency: str | None = None
    notes: str | None = None
    # If end_date_ms is missing the purchase counts as active through today
    start_date_ms: int | None = None
    end_date_ms: int | None = None
    created_at_ms: int | None = None
    updated_at_ms: int | None = None


class ContactAiMetadata(BaseModel):
    """Provenance recorded from the extraction pass."""

    confidence_by_field: dict[str, float] = Field(default_factory=dict)
    evidence: dict[str, str] = Field(default_factory=dict)


class Contact(BaseModel):
    """Canonical contact record as stored in the document store."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    owner_id: str
    workspace_id: str | None = None
    member_ids: list[str] = Field(default_factory=list)
    is_draft: bool = False
    source_capture_id: str | None = None

    # Identity
    full_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    job_title: str | None = None
    company_name: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    website: str | None = None
    location: str | None = None

    # Classification
    lead_status: LeadStatus | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)

    social_followers: list[SocialFollower] = Field(default_factory=list)
    purchases: list[ContactPurchase] = Field(default_factory=list)
    extra_links: list[ExtraLink] = Field(default_factory=list)

    # Research artifacts
    deep_research_status: DeepResearchStatus = "disabled"
    deep_research_error: str | None = None
    deep_research_prompt: str | None = None
    deep_research_raw: str | None = None
    deep_research_summary: str | None = None
    deep_research_sources: list[SearchResult] = Field(default_factory=list)
    research_fields: dict[str, str | None] = Field(default_factory=dict)
    research_images: list[ResearchImage] = Field(default_factory=list)

    ai: ContactAiMetadata = Field(default_factory=ContactAiMetadata)

    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: Any) -> list[str]:
        return clean_tags(v)

    @field_validator(
        "member_ids",
        "social_followers",
        "purchases",
        "extra_links",
        "deep_research_sources",
        "research_images",
        mode="before",
    )
    @classmethod
    def none_to_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("research_fields", mode="before")
    @classmethod
    def none_to_empty_dict(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("ai", mode="before")
    @classmethod
    def none_to_empty_ai(cls, v: Any) -> Any:
        return {} if v is None else v

    def can_be_edited_by(self, owner_id: str) -> bool:
        """Owner and workspace members may read and edit the contact."""
        return self.owner_id == owner_id or owner_id in self.member_ids

    def display_name(self) -> str:
        """Full name, or first + last when no full name was captured."""
        if self.full_name and self.full_name.strip():
            return self.full_name.strip()
        return " ".join(p for p in (self.first_name, self.last_name) if p).strip()


class ConflictRecord(BaseModel):
    """An identity mismatch between stored and incoming data."""

    field: str
    existing: str
    incoming: str
