"""Configuration management for the Scenario Orchestration Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
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

    # Anthropic configuration (narrative generation)
    ANTHROPIC_API_KEY: str = Field(default="", description="Anthropic API key")

    # Environment
    SCENARIO_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Feature flag
    ENABLE_SCENARIO_ORCHESTRATION: bool = Field(
        default=True, description="Expose the scenario orchestration endpoints"
    )

    # Narrative generation
    NARRATIVE_MODEL: str = Field(
        default="claude-sonnet-4-20250514", description="Model for suite run narratives"
    )
    NARRATIVE_MAX_TOKENS: int = Field(default=1500, description="Max tokens per narrative")
    NARRATIVE_TEMPERATURE: float = Field(default=0.7, description="Narrative sampling temperature")

    # Listing defaults
    DEFAULT_PAGE_LIMIT: int = Field(default=20, description="Default page size for list endpoints")
    AUDIT_PAGE_LIMIT: int = Field(default=50, description="Default page size for audit log listing")


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
