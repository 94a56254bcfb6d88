from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Admin routes are open when unset
    admin_token: Optional[str] = Field(default=None, alias="ADMIN_TOKEN")

    db_path: str = Field(default="data/news.db", alias="DB_PATH")

    schedule_enabled: bool = Field(default=True, alias="SCHEDULE_ENABLED")
    fetch_at_utc: str = Field(default="02:00", alias="FETCH_AT_UTC")

    request_timeout_seconds: int = Field(default=20, alias="REQUEST_TIMEOUT_SECONDS")
    user_agent: str = Field(default=BROWSER_UA, alias="USER_AGENT")
    max_items_per_feed: int = Field(default=50, alias="MAX_ITEMS_PER_FEED")
    scrape_enabled: bool = Field(default=True, alias="SCRAPE_ENABLED")
    scrape_max_items: int = Field(default=10, alias="SCRAPE_MAX_ITEMS")
    adapter_timeout_seconds: int = Field(default=60, alias="ADAPTER_TIMEOUT_SECONDS")
    ingest_timeout_seconds: int = Field(default=300, alias="INGEST_TIMEOUT_SECONDS")

    page_size: int = Field(default=30, alias="PAGE_SIZE")
    lucky_window_days: int = Field(default=90, alias="LUCKY_WINDOW_DAYS")

    enrich_window: int = Field(default=1000, alias="ENRICH_WINDOW")
    enrich_batch_size: int = Field(default=5, alias="ENRICH_BATCH_SIZE")
    enrich_batch_delay_seconds: float = Field(default=0.5, alias="ENRICH_BATCH_DELAY_SECONDS")

    filter_on_ingest: bool = Field(default=False, alias="FILTER_ON_INGEST")
    filter_batch_size: int = Field(default=20, alias="FILTER_BATCH_SIZE")
    filter_on_batch_error: Literal["drop", "keep"] = Field(default="drop", alias="FILTER_ON_BATCH_ERROR")

    google_cloud_project: Optional[str] = Field(default=None, alias="GOOGLE_CLOUD_PROJECT")
    google_cloud_location: str = Field(default="us-central1", alias="GOOGLE_CLOUD_LOCATION")
    embedding_model: str = Field(default="text-embedding-004", alias="EMBEDDING_MODEL")
    embedding_dimensions: int = Field(default=768, alias="EMBEDDING_DIMENSIONS")
    embedding_max_chars: int = Field(default=8000, alias="EMBEDDING_MAX_CHARS")
    generation_model: str = Field(default="gemini-2.5-flash", alias="GENERATION_MODEL")
    rerank_enabled: bool = Field(default=True, alias="RERANK_ENABLED")
    rerank_model: str = Field(default="semantic-ranker-512@latest", alias="RERANK_MODEL")
    model_timeout_seconds: int = Field(default=30, alias="MODEL_TIMEOUT_SECONDS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

@lru_cache
def get_settings() -> Settings:
    return Settings()
