"""Configuration data models."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AppConfig:
    """Application configuration settings."""
    cms_url: str = "http://localhost:8055"
    cms_email: str | None = None
    cms_password: str | None = None
    cms_static_token: str | None = None  # Skips login when set
    cheapshark_base_url: str = "https://www.cheapshark.com/api/1.0"
    steam_store_url: str = "https://store.steampowered.com"
    steamspy_url: str = "https://steamspy.com/api.php"
    protondb_url: str = "https://www.protondb.com/api/v1/reports/summaries"
    request_delay: float = 1.0  # Minimum seconds between calls to one API
    request_timeout: float = 10.0
    max_retries: int = 3
    batch_limit: int = 50  # Games per Steam/ProtonDB sync run
    stale_threshold_days: int = 180
    deal_retention_days: int = 7
    email_enabled: bool = False
    email_from: str = "alerts@handhelddeals.com"
    discord_webhook_url: str | None = None
    healthcheck_urls: dict[str, str] = field(default_factory=dict)  # job name -> ping URL
    log_level: str = "INFO"
