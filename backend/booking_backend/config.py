# backend/booking_backend/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # project root


class Settings(BaseSettings):
    database_url: str
    redis_url: str

    # Default slot policy (providers may override per-column)
    slot_granularity_minutes: int = 15
    min_lead_time_minutes: int = 0
    max_advance_days: int = 60

    # Multi-member fan-out
    member_fetch_concurrency: int | None = None  # None = one task per active member
    member_fetch_timeout_seconds: float | None = None

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative sqlite path is resolved against the project root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
