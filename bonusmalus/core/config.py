"""Application settings, read from the environment (prefix BONUSMALUS_) or a local .env file."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BONUSMALUS_", env_file=".env")

    database_url: str = "sqlite:///./bonusmalus.db"
    database_echo: bool = False

    # Auto-end fires once this many players are at or below zero points.
    low_score_threshold: int = 3
    access_code_length: int = 8

    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
