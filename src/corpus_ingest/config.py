"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Worker settings, populated from env vars or .env file.

    The three credentials have no defaults: the worker refuses to start
    when any of them is missing.
    """

    # Credentials
    openai_api_key: str = Field(description="Embedding API key")
    admin_token: str = Field(description="Admin token shared with the management API")
    db_password: str = Field(description="MongoDB password")

    # Job / source store
    mongo_host: str = "mongodb"
    mongo_port: int = 27017
    mongo_user: str = "doxie"
    mongo_database: str = "doxie"
    connect_timeout: float = Field(default=10.0, description="Seconds to wait for backing services at startup")

    # Vector store
    chroma_host: str = "chroma"
    chroma_port: int = 8000

    # Embedding
    embedding_provider: str = Field(default="openai", description="'openai' or 'huggingface'")
    embedding_model: str = "text-embedding-ada-002"
    embedding_batch_size: int = 500

    # Local storage
    data_dir: Path = Field(default=Path("docker/data"), description="Where Flarum snapshots are written")
    files_dir: Path = Field(default=Path("html/files"), description="Where uploaded archives live")

    # Worker
    poll_interval: float = 1.0
    request_timeout: float = 60.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def mongo_uri(self) -> str:
        return f"mongodb://{self.mongo_user}:{self.db_password}@{self.mongo_host}:{self.mongo_port}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    return Settings()  # type: ignore[call-arg]
