import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        csrf_secret: str,
        log_level: str,
        scheduler_enabled: bool,
        page_size: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.csrf_secret = csrf_secret
        self.log_level = log_level
        self.scheduler_enabled = scheduler_enabled
        self.page_size = page_size


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("LEDGER_DATABASE_URL")
    if not database_url:
        database_url = f"sqlite:///{_ensure_data_dir() / 'ledger.db'}"
    timezone = os.getenv("LEDGER_TIMEZONE", "America/New_York")
    csrf_secret = os.getenv(
        "LEDGER_CSRF_SECRET",
        "3f9c1d0e6b7a4f58a2c9e1d4b6f80a7c5e3d2b1a09f8e7d6c5b4a39281706f5e",
    )
    log_level = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
    scheduler_enabled = _env_flag("LEDGER_SCHEDULER_ENABLED", "1")
    page_size = min(max(int(os.getenv("LEDGER_PAGE_SIZE", "50")), 1), 200)
    return Settings(
        database_url=database_url,
        timezone=timezone,
        csrf_secret=csrf_secret,
        log_level=log_level,
        scheduler_enabled=scheduler_enabled,
        page_size=page_size,
    )
