from __future__ import annotations

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Record store (the host platform's database)
    db_url: str = "sqlite:////app/data/lms.db"
    table_prefix: str = "mdl_"  # physical prefix; catalog names are logical ("page" -> "mdl_page")
    store_timeout_seconds: float = 30.0

    # Deep links for the review UI
    site_url: str = "http://localhost"

    # Occurrence context sizes (characters either side of a match)
    context_window: int = 1000
    preview_window: int = 50

    # Probe and include add-on tables (H5P, HVP) when present
    include_optional_tables: bool = True

    # Defaults offered to callers before the first scan
    default_search_term: str = ""
    default_dry_run: bool = True

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_windows(self) -> Settings:
        if self.context_window <= 0:
            raise ValueError("CONTEXT_WINDOW must be a positive number of characters")
        if self.preview_window <= 0:
            raise ValueError("PREVIEW_WINDOW must be a positive number of characters")
        self.site_url = self.site_url.rstrip("/")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
