from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ==============================
    # Application
    # ==============================
    APP_NAME: str = "Catalog Uploads Service"
    ENVIRONMENT: str = "local"

    # ==============================
    # Database
    # ==============================
    DATABASE_URL: str = "sqlite:///./catalog.db"

    # ==============================
    # Logging
    # ==============================
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ==============================
    # Upload storage
    # ==============================
    UPLOAD_ROOT_DIR: str = "storage"
    UPLOAD_SUB_DIR: str = "uploads"
    UPLOAD_STAGING_DIR: str = "staging"

    # ==============================
    # Spreadsheet Import
    # ==============================
    IMPORT_BATCH_SIZE: int = 100
    IMPORT_IMAGE_WIDTH: int = 800
    IMPORT_IMAGE_HEIGHT: int = 800
    IMPORT_REQUIRED_FIELDS: str = "code,category_id,name,specification,standard,unit,quantity"
    IMPORT_REFERENCE_FIELD: str = "category_id"
    IMPORT_MAX_CONCURRENT_JOBS: int = 4
    IMPORT_IMAGE_SOURCE_DIR: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Cached settings loader (once per process)."""
    return Settings()


__all__ = ["Settings", "get_settings"]
