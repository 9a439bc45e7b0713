from functools import lru_cache
from typing import List, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Dispute Desk"
    ENVIRONMENT: str = "development"
    API_V1_STR: str = "/api/v1"

    # Security
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 8
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str):
            v = v.strip("[").strip("]").strip('"').strip("'")
            if not v:
                return []
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # Database - Supabase Postgres in production, SQLite locally
    DATABASE_URL: str = "sqlite+aiosqlite:///./dispute_desk.db"

    # Blob storage for chat attachments
    STORAGE_DIR: str = "storage"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    MAX_ATTACHMENT_MB: int = 10

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file="backend_config.env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def max_attachment_bytes(self) -> int:
        return self.MAX_ATTACHMENT_MB * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()
