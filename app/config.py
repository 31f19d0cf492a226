from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "pdf-share-gateway"
    app_env: str = "dev"
    app_secret_key: str = "change-me-in-production"
    log_level: str = "INFO"

    storage_backend: Literal["local", "supabase"] = "local"
    storage_dir: str = "uploads/objects"
    public_base_url: str = "http://localhost:8000"

    max_file_size_bytes: int = 5 * 1024 * 1024
    rate_limit_max_uploads: int = 5
    rate_limit_window_seconds: int = 60 * 60
    grant_ttl_seconds: int = 365 * 24 * 60 * 60
    cache_control: str = "3600"
    compensate_orphaned_objects: bool = False

    supabase_url: str = ""
    supabase_key: str = ""
    supabase_bucket: str = "uploads"
    supabase_timeout_seconds: float = 30.0

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PDFSHARE_")


@lru_cache
def get_settings() -> Settings:
    return Settings()
