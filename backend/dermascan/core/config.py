from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "DermaScan"
    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    LOG_LEVEL: str = Field(default="INFO", description="Root logging level")
    LOG_FORMAT: str | None = Field(
        default=None,
        description="Custom logging formatter pattern (optional).",
    )
    LOG_DATE_FORMAT: str | None = Field(
        default=None,
        description="Custom logging date format (optional).",
    )
    LOG_FILE: str | None = Field(
        default=None,
        description="Optional path to a file where logs should be written.",
    )
    GEMINI_API_KEY: str | None = Field(default=None)
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash")
    GEMINI_TEMPERATURE: float = Field(default=0.4, description="Sampling temperature for skin analysis")
    GEMINI_TIMEOUT_SECONDS: int = Field(default=60, description="Timeout per Gemini request (seconds)")
    ANALYSIS_ERROR_MESSAGE: str = Field(
        default="Failed to analyze image. Please try again.",
        description="Message shown to the user whenever the analysis fails.",
    )
    SSE_KEEPALIVE_SECONDS: float = Field(default=15.0, description="Idle interval before an SSE keepalive frame")
    SESSION_IDLE_SECONDS: float = Field(
        default=1800.0,
        description="Sessions untouched for this long are released when a new one is opened.",
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
