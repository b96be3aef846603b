"""Configuration management for the Contact Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Model chat service (OpenAI-compatible, OpenRouter by default)
    OPENROUTER_API_KEY: str = Field(..., description="OpenRouter API key")
    OPENROUTER_BASE_URL: str = Field(
        default="https://openrouter.ai/api/v1", description="Chat completions base URL"
    )
    OPENROUTER_APP_TITLE: str = Field(default="contact-engine", description="X-Title header")
    OPENROUTER_REFERER: str = Field(default="http://localhost", description="HTTP-Referer header")
    MODEL_TIMEOUT_SECONDS: float = Field(default=120.0, description="Chat completion timeout")

    # Research service (Perplexity, OpenAI-compatible)
    PERPLEXITY_API_KEY: str = Field(..., description="Perplexity API key")
    PERPLEXITY_BASE_URL: str = Field(
        default="https://api.perplexity.ai", description="Perplexity API base URL"
    )
    PERPLEXITY_MODEL: str = Field(default="sonar-deep-research", description="Research model")
    PERPLEXITY_RETURN_IMAGES: bool = Field(default=True, description="Ask research for images")
    PERPLEXITY_IMAGE_DOMAIN_FILTER: list[str] = Field(
        default_factory=lambda: [
            "-gettyimages.com",
            "-shutterstock.com",
            "-istockphoto.com",
            "-pinterest.com",
        ],
        description="Image domain filter (max 10 entries)",
    )
    PERPLEXITY_IMAGE_FORMAT_FILTER: list[str] = Field(
        default_factory=lambda: ["jpg", "png", "webp"],
        description="Image format filter (max 10 entries)",
    )
    RESEARCH_TIMEOUT_SECONDS: float = Field(default=600.0, description="Research call timeout")
    RESEARCH_STREAMING_ENABLED: bool = Field(
        default=True, description="Use the streaming research backend when available"
    )

    # Environment
    ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Models per pass
    EXTRACTION_MODEL: str = Field(
        default="google/gemini-3-flash-preview", description="Model for the extraction pass"
    )
    ENRICHMENT_MODEL: str = Field(
        default="google/gemini-3-flash-preview", description="Model for the enrichment pass"
    )
    CURATION_MODEL: str = Field(
        default="google/gemini-3-flash-preview", description="Model for link curation"
    )

    # Capture input limits
    MAX_CAPTURE_IMAGES: int = Field(default=6, description="Max images per capture/ingest")
    MAX_IMAGE_BYTES: int = Field(default=10 * 1024 * 1024, description="Max bytes per image")

    # Research artifacts
    MAX_RESEARCH_IMAGES: int = Field(default=6, description="Max research images persisted")
    IMAGE_FETCH_TIMEOUT_SECONDS: float = Field(default=20.0, description="Image download timeout")
    MAX_EXTRA_LINKS: int = Field(default=12, description="Max curated extra links")
    MAX_LINK_CANDIDATES: int = Field(default=80, description="Max link candidates sent to ranking")

    # Storage
    STORAGE_BUCKET: str = Field(default="contact-files", description="Supabase storage bucket")
    CONTACTS_TABLE: str = Field(default="contacts", description="Contacts table name")
    CAPTURES_TABLE: str = Field(default="captures", description="Captures table name")
    WORKSPACES_TABLE: str = Field(default="workspaces", description="Workspaces table name")

    # Retention
    CAPTURE_IMAGE_RETENTION_DAYS: int = Field(
        default=30, description="Days to keep capture screenshots"
    )
    CAPTURE_CLEANUP_BATCH: int = Field(default=200, description="Captures per retention sweep")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
