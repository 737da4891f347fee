"""Application settings, configurable via environment variables."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings - every field can be overridden with QUIZ_PORTAL_<NAME>"""

    model_config = SettingsConfigDict(
        env_prefix="QUIZ_PORTAL_",
        env_file=".env",
        extra="ignore",
    )

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "College Portal Quiz Engine"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite:///./quiz_portal.db"
    DB_ECHO: bool = False
    SEED_SAMPLE_DATA: bool = True

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # text | json

    # ==========================================
    # Quiz authoring limits
    # ==========================================
    MIN_OPTIONS: int = 2
    QUESTION_MAX_LENGTH: int = 5000
    OPTION_MAX_LENGTH: int = 1000

    # ==========================================
    # Client
    # ==========================================
    CLIENT_TIMEOUT_SECONDS: float = 10.0

    @field_validator("LOG_FORMAT")
    @classmethod
    def _check_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            raise ValueError("LOG_FORMAT must be 'text' or 'json'")
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


settings = Settings()
