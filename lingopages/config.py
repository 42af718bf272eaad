"""Application settings, read from ``LINGOPAGES_*`` environment variables or a ``.env`` file."""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lingopages.services.keys import DEFAULT_TEMPLATE_KEY


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LINGOPAGES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    storage_backend: Literal["memory", "http"] = Field(
        default="memory",
        description="Object store implementation: in-process dict or Firebase-style REST store.",
    )
    storage_url: Optional[str] = Field(default=None, description="Base URL of the REST store.")
    storage_auth_token: Optional[str] = None
    storage_timeout: float = Field(default=10.0, gt=0)

    locales: List[str] = Field(default_factory=lambda: ["en-us"])
    default_locale: str = "en-us"
    localization_enabled: bool = True

    template_block_key: str = DEFAULT_TEMPLATE_KEY
    log_level: str = "INFO"
    write_rate_limit: str = "30/minute"

    @model_validator(mode="after")
    def _check_storage(self) -> "Settings":
        if self.storage_backend == "http" and not self.storage_url:
            raise ValueError("LINGOPAGES_STORAGE_URL is required when the storage backend is 'http'.")
        if self.default_locale not in self.locales:
            raise ValueError(f"Default locale '{self.default_locale}' must be one of {self.locales}.")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
