"""Service layer for business logic and external integrations."""

from .battery_estimator import estimate_all_devices, estimate_battery, estimate_to_record
from .catalog import CatalogService
from .cheapshark_client import CheapSharkClient
from .cms_client import DirectusSession
from .config import ConfigurationService, ValidationResult
from .errors import (
    AppError,
    CmsError,
    ConfigurationError,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    NetworkError,
    SyncError,
    UserFriendlyError,
    ValidationError,
    get_error_service,
    handle_error,
)
from .http_client import HttpClientService
from .monitoring import DiscordAlerter, HealthcheckPinger, check_job_logs
from .protondb_client import ProtonDbClient
from .staleness import classify_game_staleness, flag_stale_review
from .steam_client import SteamClient

__all__ = [
    "AppError",
    "CatalogService",
    "CheapSharkClient",
    "CmsError",
    "ConfigurationError",
    "ConfigurationService",
    "DirectusSession",
    "DiscordAlerter",
    "ErrorCategory",
    "ErrorHandlingService",
    "ErrorSeverity",
    "HealthcheckPinger",
    "HttpClientService",
    "NetworkError",
    "ProtonDbClient",
    "SteamClient",
    "SyncError",
    "UserFriendlyError",
    "ValidationError",
    "ValidationResult",
    "check_job_logs",
    "classify_game_staleness",
    "estimate_all_devices",
    "estimate_battery",
    "estimate_to_record",
    "flag_stale_review",
    "get_error_service",
    "handle_error",
]
