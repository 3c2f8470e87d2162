from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    accounts_config: str | None = None
    account_id: str | None = None
    master_key: str = ""
    show_token: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 4141

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @property
    def auth_enabled(self) -> bool:
        return bool(self.master_key.strip())

    @property
    def selected_account_id(self) -> str | None:
        return _normalize_optional(self.account_id)


def _normalize_optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@lru_cache
def get_settings() -> Settings:
    return Settings()
