"""Application configuration management."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """regindex settings loaded from environment variables."""

    # Embedding
    regindex_embedding_model: str = "all-MiniLM-L6-v2"

    # Vector index
    regindex_chroma_path: str = "./data/chroma"
    regindex_chroma_collection: str = "regulatory_chunks"

    # External state store: "local", "s3" or "memory"
    regindex_storage_backend: str = "local"
    regindex_storage_path: str = "./data/state"
    regindex_s3_bucket: str = ""
    regindex_s3_region: str = "us-east-1"
    regindex_s3_endpoint_url: str = ""

    # Durable runtime
    regindex_runtime_db: str = "./data/runtime.db"
    regindex_max_concurrent_workers: int = 4
    regindex_max_concurrent_coordinators: int = 2
    regindex_step_payload_limit: int = 1024 * 1024
    regindex_child_poll_interval: float = 2.0
    regindex_stale_state_max_age_hours: float = 72.0

    # Fetching
    regindex_fetch_min_interval: float = 0.2
    regindex_fetch_timeout: float = 30.0
    regindex_user_agent: str = "regindex-bot/1.0 (regulatory research crawler)"

    # Best-effort status reporting
    regindex_metadata_sync_url: str = ""

    # HTTP API
    regindex_api_host: str = "127.0.0.1"
    regindex_api_port: int = 8080

    @property
    def chroma_path(self) -> Path:
        return Path(self.regindex_chroma_path)

    @property
    def state_path(self) -> Path:
        return Path(self.regindex_storage_path)

    @property
    def runtime_db_url(self) -> str:
        if "://" in self.regindex_runtime_db:
            return self.regindex_runtime_db
        return f"sqlite:///{self.regindex_runtime_db}"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
