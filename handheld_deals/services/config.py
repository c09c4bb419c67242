"""Configuration service for managing sync job settings."""

import json
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

import structlog

from ..models import AppConfig
from .errors import ConfigurationError

log = structlog.stdlib.get_logger()

# Environment variable -> AppConfig field
ENV_OVERRIDES: dict[str, str] = {
    "DIRECTUS_API_URL": "cms_url",
    "DIRECTUS_ADMIN_EMAIL": "cms_email",
    "DIRECTUS_ADMIN_PASSWORD": "cms_password",
    "DIRECTUS_ADMIN_TOKEN": "cms_static_token",
    "CHEAPSHARK_BASE_URL": "cheapshark_base_url",
    "STEAM_STORE_URL": "steam_store_url",
    "DISCORD_WEBHOOK_URL": "discord_webhook_url",
    "EMAIL_ENABLED": "email_enabled",
    "EMAIL_FROM": "email_from",
    "LOG_LEVEL": "log_level",
}

_TRUTHY = {"1", "true", "yes", "on"}


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None) -> None:
        self.is_valid: bool = is_valid
        self.errors: list[str] = errors or []


class ConfigurationService:
    """Service for managing application configuration."""

    def __init__(
        self,
        config_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config_path: Path = config_path or Path.home() / ".config" / "handheld-deals" / "config.json"
        self._environ = environ if environ is not None else os.environ
        log.info("Configuration service initialized", config_path=str(self.config_path))

    def load_config(self, apply_env: bool = True) -> AppConfig:
        """Load configuration from file, then apply environment overrides."""
        config = self._load_file_config()
        if apply_env:
            config = self.apply_env_overrides(config)
        return config

    def _load_file_config(self) -> AppConfig:
        if not self.config_path.exists():
            log.info("Configuration file not found, using defaults")
            return self._get_default_config()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data: dict[str, Any] = json.load(f)

            config = self._dict_to_config(data)
            validation_result = self.validate_config(config)

            if not validation_result.is_valid:
                log.warning("Invalid configuration loaded, using defaults", errors=validation_result.errors)
                return self._get_default_config()

            log.info("Configuration loaded successfully")
            return config

        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            log.error("Failed to load configuration, using defaults", error=str(e))
            return self._get_default_config()

    def apply_env_overrides(self, config: AppConfig) -> AppConfig:
        """Return a copy of config with environment variables applied."""
        changes: dict[str, Any] = {}
        for env_name, field_name in ENV_OVERRIDES.items():
            raw = self._environ.get(env_name)
            if raw is None or raw == "":
                continue
            if field_name == "email_enabled":
                changes[field_name] = raw.strip().lower() in _TRUTHY
            elif field_name == "log_level":
                changes[field_name] = raw.strip().upper()
            else:
                changes[field_name] = raw

        if not changes:
            return config

        log.debug("Applied environment overrides", fields=sorted(changes))
        overridden = replace(config, **changes)
        validation_result = self.validate_config(overridden)
        if not validation_result.is_valid:
            raise ConfigurationError(
                f"Invalid environment configuration: {', '.join(validation_result.errors)}",
                setting=", ".join(sorted(changes)),
            )
        return overridden

    def save_config(self, config: AppConfig) -> None:
        """Save configuration to file. Credentials are never written."""
        validation_result = self.validate_config(config)
        if not validation_result.is_valid:
            raise ValueError(f"Invalid configuration: {', '.join(validation_result.errors)}")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            data = self._config_to_dict(config)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            log.info("Configuration saved successfully")

        except OSError as e:
            log.error("Failed to save configuration", error=str(e))
            raise

    def validate_config(self, config: AppConfig) -> ValidationResult:
        """Validate configuration settings."""
        errors = []

        for name in ("cms_url", "cheapshark_base_url", "steam_store_url", "steamspy_url", "protondb_url"):
            value = getattr(config, name)
            if not isinstance(value, str) or not value.startswith(("http://", "https://")):
                errors.append(f"{name} must be an http(s) URL")

        if config.discord_webhook_url is not None and not str(config.discord_webhook_url).startswith("https://"):
            errors.append("discord_webhook_url must be an https URL")

        if not isinstance(config.request_delay, (int, float)) or config.request_delay < 0:
            errors.append("request_delay must be a non-negative number")
        elif config.request_delay > 60:
            errors.append("request_delay should not exceed 60 seconds")

        if not isinstance(config.request_timeout, (int, float)) or config.request_timeout <= 0:
            errors.append("request_timeout must be a positive number")

        if not isinstance(config.max_retries, int) or config.max_retries < 0:
            errors.append("max_retries must be a non-negative integer")
        elif config.max_retries > 10:
            errors.append("max_retries should not exceed 10")

        if not isinstance(config.batch_limit, int) or config.batch_limit < 1:
            errors.append("batch_limit must be a positive integer")

        if not isinstance(config.stale_threshold_days, int) or config.stale_threshold_days < 1:
            errors.append("stale_threshold_days must be a positive integer")

        if not isinstance(config.deal_retention_days, int) or config.deal_retention_days < 1:
            errors.append("deal_retention_days must be a positive integer")

        if not isinstance(config.healthcheck_urls, dict):
            errors.append("healthcheck_urls must map job names to URLs")

        valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if config.log_level not in valid_log_levels:
            errors.append(f"log_level must be one of: {', '.join(sorted(valid_log_levels))}")

        return ValidationResult(len(errors) == 0, errors)

    @staticmethod
    def require_cms_credentials(config: AppConfig) -> None:
        """Raise ConfigurationError unless a token or email+password is set."""
        if config.cms_static_token:
            return
        if config.cms_email and config.cms_password:
            return
        raise ConfigurationError(
            "Missing CMS credentials",
            setting="DIRECTUS_ADMIN_TOKEN / DIRECTUS_ADMIN_EMAIL + DIRECTUS_ADMIN_PASSWORD",
            expected="a static token, or an admin email and password",
        )

    def _get_default_config(self) -> AppConfig:
        """Get default configuration."""
        return AppConfig()

    def _config_to_dict(self, config: AppConfig) -> dict[str, Any]:
        """Convert AppConfig to dictionary for JSON serialization."""
        return {
            "cms_url": config.cms_url,
            "cheapshark_base_url": config.cheapshark_base_url,
            "steam_store_url": config.steam_store_url,
            "steamspy_url": config.steamspy_url,
            "protondb_url": config.protondb_url,
            "request_delay": config.request_delay,
            "request_timeout": config.request_timeout,
            "max_retries": config.max_retries,
            "batch_limit": config.batch_limit,
            "stale_threshold_days": config.stale_threshold_days,
            "deal_retention_days": config.deal_retention_days,
            "email_enabled": config.email_enabled,
            "email_from": config.email_from,
            "discord_webhook_url": config.discord_webhook_url,
            "healthcheck_urls": dict(config.healthcheck_urls),
            "log_level": config.log_level,
        }

    def _dict_to_config(self, data: dict[str, Any]) -> AppConfig:
        """Convert dictionary to AppConfig, keeping defaults for absent keys."""
        defaults = AppConfig()

        def _str(key: str, default: str | None) -> str | None:
            value = data.get(key, default)
            return str(value) if value is not None else None

        def _num(key: str, default: float) -> float:
            value = data.get(key, default)
            return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else default

        def _int(key: str, default: int) -> int:
            value = data.get(key, default)
            return int(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else default

        healthcheck_raw = data.get("healthcheck_urls") or {}
        healthcheck_urls = {str(k): str(v) for k, v in healthcheck_raw.items()}

        email_raw = data.get("email_enabled", defaults.email_enabled)

        return AppConfig(
            cms_url=_str("cms_url", defaults.cms_url) or defaults.cms_url,
            cms_email=_str("cms_email", None),
            cms_password=_str("cms_password", None),
            cms_static_token=_str("cms_static_token", None),
            cheapshark_base_url=_str("cheapshark_base_url", defaults.cheapshark_base_url) or defaults.cheapshark_base_url,
            steam_store_url=_str("steam_store_url", defaults.steam_store_url) or defaults.steam_store_url,
            steamspy_url=_str("steamspy_url", defaults.steamspy_url) or defaults.steamspy_url,
            protondb_url=_str("protondb_url", defaults.protondb_url) or defaults.protondb_url,
            request_delay=_num("request_delay", defaults.request_delay),
            request_timeout=_num("request_timeout", defaults.request_timeout),
            max_retries=_int("max_retries", defaults.max_retries),
            batch_limit=_int("batch_limit", defaults.batch_limit),
            stale_threshold_days=_int("stale_threshold_days", defaults.stale_threshold_days),
            deal_retention_days=_int("deal_retention_days", defaults.deal_retention_days),
            email_enabled=email_raw if isinstance(email_raw, bool) else defaults.email_enabled,
            email_from=_str("email_from", defaults.email_from) or defaults.email_from,
            discord_webhook_url=_str("discord_webhook_url", None),
            healthcheck_urls=healthcheck_urls,
            log_level=str(data.get("log_level", defaults.log_level)).upper(),
        )
