"""
Settings for ActivityMgr.

Values come from environment variables prefixed with ACTIVITYMGR_
(or a local .env file), e.g. ACTIVITYMGR_DATABASE_URL.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACTIVITYMGR_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str = "sqlite:///./activitymgr.db"
    debug: bool = False
    log_level: str | None = None
    log_json: bool = False

    # Durations created on an empty database (hundredths of a day)
    default_durations: list[int] = [25, 50, 75, 100]

    # Placeholders used by create_new_collaborator / create_new_task
    collaborator_login_prefix: str = "new"
    collaborator_first_name: str = "first name"
    collaborator_last_name: str = "last name"
    task_code_prefix: str = "N"
    task_name: str = "new task"


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
