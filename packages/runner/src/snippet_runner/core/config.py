from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogFormat = Literal["json", "console"]
Environment = Literal["development", "production"]

BASE_URLS: dict[str, str] = {
    "development": "https://localhost:7158",
    "production": "https://snippet-runner.azurewebsites.net",
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SNIPPET_RUNNER_",
        env_file=".env",
        extra="ignore",
    )

    environment: Environment = Field(default="production")
    base_url: str | None = Field(default=None)
    development_base_url: str = Field(default=BASE_URLS["development"])
    production_base_url: str = Field(default=BASE_URLS["production"])

    framework_path: str = Field(default="_framework")
    manifest_file: str = Field(default="boot.json")
    references: list[str] = Field(default_factory=list)
    fetch_concurrency: int = Field(default=4, ge=1)
    http_timeout_s: float = Field(default=30.0, gt=0)
    unit_name: str = Field(default="InMemoryUnit", min_length=1)

    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default="console")

    def resolved_base_url(self) -> str:
        """
        Explicit base_url wins; otherwise pick by environment.
        """
        if self.base_url:
            return self.base_url.rstrip("/")
        if self.environment == "development":
            return self.development_base_url.rstrip("/")
        return self.production_base_url.rstrip("/")


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return Settings()
