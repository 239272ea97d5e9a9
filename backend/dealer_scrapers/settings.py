"""
Engine Configuration
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from pathlib import Path
from typing import List


class Settings(BaseSettings):
    """Scraping engine settings loaded from environment variables."""

    # Browser Configuration
    headless: bool = True
    navigation_timeout_seconds: float = 45.0
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    request_retries: int = 3

    # Content waiting
    content_wait_attempts: int = 5
    content_wait_interval_seconds: float = 2.0
    hydration_wait_attempts: int = 5

    # Navigation bounds
    scroll_delay_seconds: float = 2.0
    max_scroll_iterations: int = 10
    max_pages: int = 3
    max_load_more_clicks: int = 5

    # Pacing
    dealer_delay_seconds: float = 3.0
    group_delay_seconds: float = 3.0
    max_concurrent_dealers: int = 1
    dealer_timeout_seconds: float = 300.0

    # Groups fetched with plain HTTP instead of a browser
    static_groups: List[str] = []

    # Response interception
    max_intercepted_payloads: int = 50
    intercept_drain_timeout_seconds: float = 5.0

    # Normalization
    default_currency: str = "ARS"

    # Results
    save_results: bool = True
    results_dir: Path = Path(__file__).parent.parent / "results"

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return Path(__file__).parent.parent.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "scraper.log"

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if Path(".env").exists() else None
        env_file_encoding = "utf-8"
        env_prefix = "DEALER_SCRAPER_"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
