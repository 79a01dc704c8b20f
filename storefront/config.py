"""
storefront/config.py - Application configuration.

Settings are read from the environment (prefix ``STOREFRONT_``) or a local
``.env`` file. ``data_file`` switches the store from pure in-memory to a JSON
document on disk.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_", env_file=".env", case_sensitive=False, extra="ignore"
    )

    data_file: Optional[str] = None
    session_secret: str = "dev_secret_change_me"
    session_max_age: int = Field(60 * 60 * 4, gt=0)
    lock_timeout: float = Field(5.0, gt=0)

    allowed_origins: str = "*"  # Comma-separated list or '*' for all
    admin_username: str = "admin"
    admin_password: str = "admin123"

    log_level: str = "INFO"
    debug: bool = False

    @property
    def origins(self) -> List[str]:
        if not self.allowed_origins or self.allowed_origins.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
