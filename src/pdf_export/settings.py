from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "PDF_EXPORT_"

SANDBOXLESS_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")
DEFAULT_BROWSER_ARGS = ("--disable-web-security", "--font-render-hinting=none")


class EngineSettings(BaseSettings):
    """Chromium launch settings sourced from environment variables."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, env_file=".env", extra="ignore")

    headless: bool = True
    sandbox: bool = False
    executable_path: Path | None = None
    channel: str | None = None
    browser_args: list[str] = Field(default_factory=lambda: list(DEFAULT_BROWSER_ARGS))

    def launch_args(self) -> list[str]:
        if self.sandbox:
            return list(self.browser_args)
        return [*SANDBOXLESS_ARGS, *self.browser_args]


@lru_cache
def get_settings() -> EngineSettings:
    """Return cached settings instance."""

    return EngineSettings()


__all__ = ["EngineSettings", "get_settings"]
