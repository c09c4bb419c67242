"""Property-based tests for configuration service."""

import json
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, strategies as st

from handheld_deals.models import AppConfig
from handheld_deals.services import ConfigurationService
from handheld_deals.services.errors import ConfigurationError


valid_urls = st.builds(
    lambda scheme, host: f"{scheme}://{host}.example.com",
    st.sampled_from(["http", "https"]),
    st.text(min_size=1, max_size=20, alphabet="abcdefghijklmnopqrstuvwxyz0123456789"),
)
valid_request_delay = st.floats(min_value=0.0, max_value=60.0, allow_nan=False, allow_infinity=False)
valid_log_levels = st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
job_names = st.sampled_from(["fetch-deals", "sync-steam", "cleanup-deals"])

valid_config_strategy = st.builds(
    AppConfig,
    cms_url=valid_urls,
    cheapshark_base_url=valid_urls,
    request_delay=valid_request_delay,
    request_timeout=st.floats(min_value=0.5, max_value=120.0, allow_nan=False, allow_infinity=False),
    max_retries=st.integers(min_value=0, max_value=10),
    batch_limit=st.integers(min_value=1, max_value=500),
    stale_threshold_days=st.integers(min_value=1, max_value=1000),
    deal_retention_days=st.integers(min_value=1, max_value=90),
    email_enabled=st.booleans(),
    healthcheck_urls=st.dictionaries(job_names, st.just("https://hc-ping.com/abc"), max_size=3),
    log_level=valid_log_levels,
)


def make_service(temp_dir: str, environ: dict[str, str] | None = None) -> ConfigurationService:
    return ConfigurationService(Path(temp_dir) / "config.json", environ=environ or {})


@given(valid_config_strategy)
def test_configuration_round_trip(config: AppConfig) -> None:
    """
    **Feature: handheld-deals, Property 7: Configuration persistence round-trip**

    For any valid configuration, saving it and then reloading should preserve all values.
    """
    with tempfile.TemporaryDirectory() as temp_dir:
        service = make_service(temp_dir)

        service.save_config(config)
        loaded_config = service.load_config()

        assert loaded_config == config


def test_credentials_are_never_saved() -> None:
    config = AppConfig(cms_email="admin@example.com", cms_password="secret", cms_static_token="tok")

    with tempfile.TemporaryDirectory() as temp_dir:
        service = make_service(temp_dir)
        service.save_config(config)

        saved = json.loads(service.config_path.read_text())

    assert "cms_password" not in saved
    assert "cms_static_token" not in saved
    assert "secret" not in json.dumps(saved)


def create_invalid_config_strategy():
    """Create strategy for invalid but constructible configs."""
    return st.one_of(
        st.builds(AppConfig, cms_url=st.sampled_from(["", "localhost:8055", "ftp://cms"])),
        st.builds(AppConfig, request_delay=st.floats(min_value=61.0, max_value=120.0)),
        st.builds(AppConfig, request_delay=st.floats(min_value=-10.0, max_value=-0.01)),
        st.builds(AppConfig, max_retries=st.integers(min_value=11, max_value=50)),
        st.builds(AppConfig, batch_limit=st.integers(max_value=0)),
        st.builds(AppConfig, stale_threshold_days=st.integers(max_value=0)),
        st.builds(AppConfig, discord_webhook_url=st.just("http://discord.com/api/webhooks/1")),
        st.builds(
            AppConfig,
            log_level=st.text(min_size=1).filter(lambda x: x not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
        ),
    )


@given(create_invalid_config_strategy())
def test_configuration_validation_rejects_invalid(config: AppConfig) -> None:
    """
    **Feature: handheld-deals, Property 8: Configuration validation**

    For any invalid configuration input, validation fails with readable error messages.
    """
    service = ConfigurationService(environ={})
    result = service.validate_config(config)

    assert not result.is_valid
    assert len(result.errors) > 0
    assert all(isinstance(error, str) for error in result.errors)


@given(valid_config_strategy)
def test_configuration_validation_accepts_valid(config: AppConfig) -> None:
    """
    **Feature: handheld-deals, Property 8: Configuration validation**
    """
    result = ConfigurationService(environ={}).validate_config(config)

    assert result.is_valid
    assert result.errors == []


def test_save_rejects_invalid_config() -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        service = make_service(temp_dir)
        with pytest.raises(ValueError):
            service.save_config(AppConfig(max_retries=99))
        assert not service.config_path.exists()


class TestLoading:
    def test_missing_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            assert make_service(temp_dir).load_config() == AppConfig()

    def test_corrupt_file_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            service = make_service(temp_dir)
            service.config_path.write_text("{not json")
            assert service.load_config() == AppConfig()

    def test_invalid_values_use_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            service = make_service(temp_dir)
            service.config_path.write_text(json.dumps({"request_delay": 500}))
            assert service.load_config() == AppConfig()

    def test_partial_file_keeps_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            service = make_service(temp_dir)
            service.config_path.write_text(json.dumps({"batch_limit": 10, "log_level": "debug"}))

            config = service.load_config()

        assert config.batch_limit == 10
        assert config.log_level == "DEBUG"
        assert config.cms_url == AppConfig().cms_url


class TestEnvironmentOverrides:
    def test_overrides_are_applied(self) -> None:
        environ = {
            "DIRECTUS_API_URL": "https://cms.example.com",
            "DIRECTUS_ADMIN_TOKEN": "static-token",
            "EMAIL_ENABLED": "Yes",
            "LOG_LEVEL": "warning",
            "DISCORD_WEBHOOK_URL": "",
        }
        with tempfile.TemporaryDirectory() as temp_dir:
            config = make_service(temp_dir, environ).load_config()

        assert config.cms_url == "https://cms.example.com"
        assert config.cms_static_token == "static-token"
        assert config.email_enabled is True
        assert config.log_level == "WARNING"
        assert config.discord_webhook_url is None

    def test_environment_wins_over_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            service = make_service(temp_dir, {"DIRECTUS_API_URL": "https://env.example.com"})
            service.config_path.write_text(json.dumps({"cms_url": "https://file.example.com"}))

            assert service.load_config().cms_url == "https://env.example.com"
            assert service.load_config(apply_env=False).cms_url == "https://file.example.com"

    def test_invalid_override_raises(self) -> None:
        service = ConfigurationService(environ={"DIRECTUS_API_URL": "cms.local"})

        with pytest.raises(ConfigurationError):
            service.apply_env_overrides(AppConfig())


class TestCredentials:
    def test_static_token_is_enough(self) -> None:
        ConfigurationService.require_cms_credentials(AppConfig(cms_static_token="tok"))

    def test_email_and_password(self) -> None:
        ConfigurationService.require_cms_credentials(AppConfig(cms_email="a@b.c", cms_password="pw"))

    def test_missing_credentials(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigurationService.require_cms_credentials(AppConfig(cms_email="a@b.c"))

        assert not exc_info.value.recoverable
