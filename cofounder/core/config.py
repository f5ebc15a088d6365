"""Configuration management for the Co-Founder engine."""

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

    # Anthropic configuration (required)
    ANTHROPIC_API_KEY: str = Field(..., description="Anthropic API key")

    # Environment
    COFOUNDER_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Text generation
    COFOUNDER_MODEL: str = Field(
        default="claude-sonnet-4-20250514", description="Model for action reasoning"
    )
    COFOUNDER_MAX_TOKENS: int = Field(default=512, description="Max tokens per generation")
    LLM_TIMEOUT_SECONDS: float = Field(
        default=30.0, description="Timeout for a single text-generation call"
    )

    # Outbound SMS gateway
    SMS_SEND_URL: str = Field(
        default="http://localhost:3000/api/sms/send", description="SMS send endpoint"
    )
    SMS_API_TOKEN: str | None = Field(default=None, description="Bearer token for the SMS endpoint")
    SMS_TIMEOUT_SECONDS: float = Field(default=10.0, description="Timeout for a single SMS send")

    # Action batching
    REMINDER_SCAN_BATCH_SIZE: int = Field(
        default=10, description="Max overdue invoices considered per reminder scan"
    )
    REMINDER_MIN_DAYS_OUTSTANDING: int = Field(
        default=7, description="Invoices sent more recently than this are not scanned"
    )
    EXECUTE_ALL_LIMIT: int = Field(
        default=50, description="Safety limit for executing all approved actions"
    )


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
