# ═══════════════════════════════════════════════════════════════
# LEAKDEX v1.0 - Configuration
# Settings loaded from environment variables and .env
# ═══════════════════════════════════════════════════════════════

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"
    log_json: bool = False

    # Elasticsearch
    elastic_url: str = "http://localhost:9200"
    elastic_index: str = "breach_data"
    elastic_api_key: Optional[str] = None
    elastic_username: Optional[str] = None
    elastic_password: Optional[str] = None
    elastic_timeout: int = 30
    elastic_max_retries: int = 3
    elastic_retry_delay: float = 1.0
    elastic_verify_certs: bool = True
    elastic_ca_certs: Optional[str] = None

    # Ingestion
    ingest_chunk_size: int = Field(default=64 * 1024, gt=0)
    ingest_max_line_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    ingest_min_line_length: int = 5
    ingest_csv_delimiter: str = Field(default=",", min_length=1, max_length=1)
    ingest_encoding: str = "utf-8"
    ingest_max_in_flight: int = Field(default=64, gt=0)
    ingest_wait_for_sink: bool = True
    ingest_stamp_upload_date: bool = True
    ingest_extensions: str = ".csv,.json,.jsonl,.txt,.sql,.combo,.log"

    download_timeout: int = 60
    data_dir: str = "./leaks_data"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "*"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def ingest_extensions_list(self) -> List[str]:
        return [e.strip().lower() for e in self.ingest_extensions.split(",") if e.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
