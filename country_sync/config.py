from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from country_sync.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DATABASE_URL: str = "sqlite:///./dev.db"

    # External data sources. Required: unset or blank values fail startup.
    COUNTRY_API: Optional[str] = None
    EXCHANGE_API: Optional[str] = None
    HTTP_TIMEOUT_SECONDS: float = 5.0
    HTTP_MAX_REDIRECTS: int = 3

    SUMMARY_TOP_N: int = 5

    # Logging configuration used by country_sync.logging
    LOG_LEVEL: str = "INFO"
    CONSOLE_LOG_LEVEL: str = "INFO"

    # Base directory of the project
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    CACHE_DIR: Optional[Path] = None

    @property
    def cache_dir(self) -> Path:
        return self.CACHE_DIR or self.BASE_DIR / "cache"

    def require_sources(self) -> None:
        """Fail fast when a source endpoint is not configured."""
        missing = [
            key for key, value in (("COUNTRY_API", self.COUNTRY_API), ("EXCHANGE_API", self.EXCHANGE_API))
            if not (value or "").strip()
        ]
        if missing:
            raise ConfigurationError(f"Missing required setting(s): {', '.join(missing)}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
