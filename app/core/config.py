import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Local buffer
    BUFFER_DB_PATH: str = os.getenv("TRANSCRIPT_DB", "./.tmp/transcripts.db")
    BUFFER_CAP: int = 300
    DISPLAY_LIMIT: int = 100

    # Sync to remote sink
    SYNC_BATCH_SIZE: int = 50
    SYNC_INTERVAL_MS: int = 60_000
    AUTO_SYNC: bool = True
    # True keeps the best-effort contract: overflow is evicted locally before
    # the push, so a failed batch is lost. False only evicts confirmed batches.
    SYNC_EVICT_BEFORE_CONFIRM: bool = True

    # Supabase (PostgREST) sink
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_TABLE: str = "transcripts"
    SUPABASE_TIMEOUT: float = 15.0

    # Ranking
    MAX_WORD_ITEMS: int = 50
    MAX_SENTENCE_ITEMS: int = 15
    SNAPSHOT_VERSION: str = "v1.0.0"
    LANGUAGE: str = "ja-JP"

    # General
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    ENV: str = os.getenv("ENV", "development")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Ensure .env is loaded once
    load_dotenv(override=False)
    return Settings()
