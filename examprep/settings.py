from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List

class Settings(BaseSettings):
    # OpenAI
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    MOCK_MODE: bool = False

    # Storage
    DATA_DIR: str = "data"
    STORAGE_KEY: str = "examprep_data_v1"

    # Generation knobs
    MAX_SOURCE_CHARS: int = 8000
    MAX_PAGES: int = 30
    DEFAULT_QUESTION_COUNT: int = 5
    MAX_QUESTION_COUNT: int = 20

    # Safety/abuse knobs
    MAX_UPLOAD_MB: int = 25
    RATE_LIMIT: str = "30/minute"
    RATE_LIMIT_ENABLED: bool = True

    # CORS
    ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    # Optional extra frontend
    FRONTEND_ORIGIN: str | None = None

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
if settings.FRONTEND_ORIGIN:
    settings.ALLOW_ORIGINS.append(settings.FRONTEND_ORIGIN)
