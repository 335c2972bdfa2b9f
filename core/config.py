from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MongoDB
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "marketplace_scraper"

    TIMEZONE: str = "UTC"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Browser
    BROWSER_HEADLESS: bool = True
    BROWSER_EXECUTABLE_PATH: Optional[str] = None
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/122.0.0.0 Safari/537.36"
    )
    BROWSER_LOCALE: str = "en-US"
    VIEWPORT_WIDTH: int = 1920
    VIEWPORT_HEIGHT: int = 1080

    # Timeouts
    SEARCH_NAV_TIMEOUT_MS: int = 60000
    DETAIL_NAV_TIMEOUT_MS: int = 30000
    DOM_READY_TIMEOUT_MS: int = 5000
    NEXT_PAGE_WAIT_MS: int = 30000
    NEXT_PAGE_FALLBACK_SECONDS: float = 3.0
    EXTRACTION_TIMEOUT_SECONDS: float = 60.0

    # Pacing (seconds)
    PAGE_LOAD_DELAY: float = 3.0
    DETAIL_PAGE_DELAY: float = 2.0
    SCROLL_STEP_DELAY: float = 0.5
    SCROLL_JITTER: float = 1.0
    SCROLL_SETTLE_DELAY: float = 1.0

    # Scrolling
    SCROLL_MIN_STEP_PX: int = 600
    SCROLL_MAX_STEP_PX: int = 1200
    SCROLL_STABLE_SAMPLES: int = 3
    SEARCH_MAX_SCROLLS: int = 15
    DETAIL_MAX_SCROLLS: int = 10

    # Search phase
    DEFAULT_MAX_PRODUCTS: int = 100
    DEFAULT_MAX_PAGES: int = 10
    MAX_EMPTY_PAGES: int = 2
    LISTINGS_PER_PAGE: int = 50
    MIN_TITLE_LENGTH: int = 3
    MAX_TITLE_LENGTH: int = 200

    # Detail phase
    AUTO_SCRAPE_DETAILS: bool = True
    DETAILS_PER_BATCH: int = 10
    DETAILS_BATCH_DELAY: float = 5.0
    DETAIL_ITEM_DELAY_MIN: float = 2.0
    DETAIL_ITEM_DELAY_MAX: float = 4.0
    DETAIL_MAX_RETRIES: int = 2
    DETAIL_RETRY_DELAY: float = 2.0
    DETAIL_RETRY_BACKOFF: float = 1.0
    MIN_EXTRACTION_QUALITY: int = 50

    # Diagnostics
    CAPTURE_FAILURE_SCREENSHOTS: bool = True
    SCREENSHOT_DIR: str = "screenshots"
    JOB_LOG_LIMIT: int = 200

    SHUTDOWN_GRACE_SECONDS: float = 10.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
