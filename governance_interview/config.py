from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Security: Read from .env, never hardcode defaults here.
    # LLM-backed collaborators refuse to start without a key.
    OPENAI_API_KEY: str | None = None

    # Model Configuration
    OPENAI_MODEL: str = "gpt-4o"

    # Generation Parameters
    LLM_TEMPERATURE: float = 0.0
    MAX_RETRIES: int = 2
    LLM_TIMEOUT_SECONDS: float = 30.0

    # Database Configuration
    # PostgreSQL in production; SQLite is fine for local use.
    DATABASE_URL: str = "sqlite:///./governance.db"

    # Governance Rules
    PREDICTION_DURATION_DAYS: int = 90
    RECENT_REPORT_WARNING_DAYS: int = 30
    ANNUAL_TRIGGER_DAYS: int = 365

    # Abandoned sessions keep their snapshot for audit unless this is set
    PURGE_ABANDONED_SESSIONS: bool = False

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Loads from a .env file in the root directory
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

# Singleton instance
settings = Settings()
