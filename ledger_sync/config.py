import os
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List


load_dotenv()


class Settings(BaseSettings):
    APP_NAME: str = os.getenv("APP_NAME", "ledger-sync")
    ENV: str = os.getenv("ENV", "development")
    DEBUG: bool = False
    DATABASE_URL: str = "sqlite+aiosqlite:///./ledger_sync.db"

    # Storage timeouts surface as ingestion failures, the pipeline never retries
    DB_POOL_TIMEOUT_SECONDS: int = 30
    DB_COMMAND_TIMEOUT_SECONDS: int = 60

    # Rows per bulk upsert. Peak buffered rows during CSV ingestion stay at
    # roughly this many regardless of file size.
    INGEST_BATCH_SIZE: int = 2000
    UPLOAD_TMP_DIR: str = "uploads"

    # Celery Configuration
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TASK_TIME_LIMIT: int = 1800  # 30 minutes
    CELERY_TASK_SOFT_TIME_LIMIT: int = 1500  # 25 minutes

    ALLOWED_ORIGINS: List[str] = ["*"]

    @field_validator("INGEST_BATCH_SIZE")
    def _batch_size_positive(cls, v):
        if v < 1:
            raise ValueError("INGEST_BATCH_SIZE must be at least 1")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()


def get_settings() -> Settings:
    """Helper function to get settings instance"""
    return settings
