from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings, read from the environment and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    # Supabase
    SUPABASE_URL: str = Field(default="", description="Supabase project URL")
    SUPABASE_KEY: str = Field(default="", description="Supabase anon key, user JWT is layered on top")

    # LLM gateway (OpenAI-compatible chat completions)
    LLM_API_KEY: Optional[str] = Field(default=None, description="API key for the completion endpoint")
    LLM_BASE_URL: Optional[str] = Field(default=None, description="Override for the completion endpoint base URL")
    LLM_MODEL: str = Field(default="llama-3.3-70b-versatile")
    LLM_MAX_TOKENS: int = Field(default=16000)
    LLM_TIMEOUT_SECONDS: float = Field(default=90.0)
    LLM_MAX_RETRIES: int = Field(default=2)

    MAX_TIMETABLE_DAYS: int = Field(default=28)

    LOG_LEVEL: str = Field(default="INFO")
    CORS_ORIGINS: List[str] = Field(default=["*"])


settings = Settings()
