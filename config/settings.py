from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./newest_audit.db"

    # Server
    DASHBOARD_PORT: int = 8001
    LOG_LEVEL: str = "INFO"

    # Listing source
    LISTING_URL: str = "https://news.ycombinator.com/newest"
    FETCHER: str = "browser"  # browser, http or replay
    REPLAY_FILE: str = ""

    # Collection
    TARGET_COUNT: int = 100
    MAX_ITERATIONS: int = 20
    NEXT_PAGE_TIMEOUT_SECONDS: float = 5.0
    PAGE_SETTLE_SECONDS: float = 1.0
    SCRAPE_REQUEST_DELAY: float = 1.0

    # Browser
    BROWSER_HEADLESS: bool = True

    # Sorting
    TIE_BREAK: str = "title"  # title or arrival

    # Scheduling (0 disables periodic runs)
    RUN_INTERVAL_MINUTES: int = 0

    # Host hook
    POST_RUN_IMAGE: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
