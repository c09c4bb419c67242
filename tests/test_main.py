"""Tests for the command-line entry point."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import FakeSession
from handheld_deals.jobs import JOBS
from handheld_deals.main import (
    ApplicationContext,
    __version__,
    _parse_device,
    health_check,
    list_jobs,
    main,
    parse_arguments,
    run_job,
    show_estimate,
)
from handheld_deals.models import AppConfig, DeckStatus, Device, ProtonTier
from handheld_deals.services.errors import CmsError
from handheld_deals.services.monitoring import AlertSeverity, DiscordAlerter, HealthcheckPinger


class SessionScope:
    """Async context manager handing out a prepared session."""

    def __init__(self, session: FakeSession | None = None, error: Exception | None = None) -> None:
        self.session = session
        self.error = error

    async def __aenter__(self) -> FakeSession | None:
        if self.error is not None:
            raise self.error
        return self.session

    async def __aexit__(self, *exc_info: object) -> None:
        return None


def make_context(config: AppConfig, scope: SessionScope) -> ApplicationContext:
    context = ApplicationContext()
    context._config = config
    context._alerter = AsyncMock(spec=DiscordAlerter)
    context._pinger = AsyncMock(spec=HealthcheckPinger)
    context.create_session = MagicMock(return_value=scope)
    return context


class TestArguments:
    def test_run(self) -> None:
        args = parse_arguments(["--log-dir", "/tmp/logs", "run", "fetch-deals"])

        assert args.command == "run"
        assert args.job == "fetch-deals"
        assert args.log_dir == Path("/tmp/logs")
        assert args.now.tzinfo is not None

    def test_unknown_job_is_rejected(self) -> None:
        with pytest.raises(SystemExit):
            parse_arguments(["run", "mine-bitcoin"])

    def test_estimate(self) -> None:
        args = parse_arguments([
            "estimate", "--genres", "Indie, Puzzle,", "--year", "2018",
            "--deck-status", "verified", "--tier", "platinum", "--device", "rog_ally",
        ])

        assert args.genres == ["Indie", "Puzzle"]
        assert args.release_year == 2018
        assert args.deck_status == DeckStatus.VERIFIED
        assert args.protondb_tier == ProtonTier.PLATINUM
        assert args.device == Device.ROG_ALLY

    def test_search(self) -> None:
        args = parse_arguments(["--now", "2025-06-01T12:00:00Z", "search", "hades", "--limit", "3", "--device", "all"])

        assert args.query == "hades"
        assert args.limit == 3
        assert args.device is None
        assert args.now == datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_bad_timestamp(self) -> None:
        with pytest.raises(SystemExit):
            parse_arguments(["--now", "yesterday", "list-jobs"])

    def test_parse_device(self) -> None:
        assert _parse_device("all") is None
        assert _parse_device("legion_go") == Device.LEGION_GO


def test_list_jobs(capsys: pytest.CaptureFixture[str]) -> None:
    assert list_jobs() == 0

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == len(JOBS)
    assert lines[0].startswith("fetch-deals")
    assert "0 * * * *" in lines[0]


def test_show_estimate(capsys: pytest.CaptureFixture[str]) -> None:
    args = parse_arguments(["estimate", "--genres", "indie", "--year", "2018", "--device", "steam_deck"])

    assert show_estimate(args) == 0

    out = capsys.readouterr().out
    assert out.startswith("steam_deck: 6.5h (low drain)")
    assert "Estimated 6.5h" in out


def test_show_estimate_all_devices(capsys: pytest.CaptureFixture[str]) -> None:
    show_estimate(parse_arguments(["estimate", "--device", "all"]))

    out = capsys.readouterr().out
    assert [line.split(":")[0] for line in out.splitlines() if not line.startswith(" ")] == [
        "steam_deck", "rog_ally", "legion_go",
    ]


class TestHealthCheck:
    def test_all_recent(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        for name in JOBS:
            (tmp_path / f"cron-{name}.log").write_text("{}\n")

        assert health_check(tmp_path, datetime.now(timezone.utc) + timedelta(minutes=1)) == 0
        assert "All systems healthy" in capsys.readouterr().out

    def test_stale_job(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        now = datetime.now(timezone.utc)
        for name in JOBS:
            (tmp_path / f"cron-{name}.log").write_text("{}\n")
        old = (now - timedelta(hours=5)).timestamp()
        os.utime(tmp_path / "cron-fetch-deals.log", (old, old))

        assert health_check(tmp_path, now) == 1
        out = capsys.readouterr().out
        assert "FAIL  fetch-deals: Last run 300 minutes ago" in out
        assert "Some jobs need attention" in out


class TestRunJob:
    @pytest.mark.asyncio
    async def test_successful_run_pings(self, config: AppConfig, now: datetime) -> None:
        session = FakeSession({"events": [{
            "id": "e1",
            "title": "Summer Sale",
            "start_date": "2025-05-25T00:00:00Z",
            "end_date": "2025-06-05T00:00:00Z",
            "status": "upcoming",
        }]})
        context = make_context(config, SessionScope(session))

        assert await run_job(context, "update-event-status", now) == 0

        assert session.get("events", "e1")["status"] == "active"
        context.alerter.check_error_threshold.assert_awaited_once()
        context.pinger.ping.assert_awaited_once_with("update-event-status")
        assert context.active_job is None

    @pytest.mark.asyncio
    async def test_failed_run_alerts(self, config: AppConfig, now: datetime) -> None:
        context = make_context(config, SessionScope(error=CmsError("CMS unreachable", status_code=503)))

        assert await run_job(context, "fetch-deals", now) == 1

        args = context.alerter.send_alert.await_args.args
        assert args[0] == "fetch-deals"
        assert args[2] == AlertSeverity.CRITICAL
        context.pinger.ping.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_ping_after_shutdown(self, config: AppConfig, now: datetime) -> None:
        context = make_context(config, SessionScope(FakeSession({"events": []})))
        context.request_shutdown()

        assert await run_job(context, "update-event-status", now) == 0
        context.pinger.ping.assert_not_awaited()


class TestMain:
    @pytest.fixture(autouse=True)
    def isolated(self, monkeypatch: pytest.MonkeyPatch):
        for name in ("DIRECTUS_ADMIN_TOKEN", "DIRECTUS_ADMIN_EMAIL", "DIRECTUS_ADMIN_PASSWORD", "DISCORD_WEBHOOK_URL", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        with patch("handheld_deals.main.setup_signal_handlers"):
            yield

    def test_list_jobs_exits_zero(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(tmp_path / "config.json"), "list-jobs"])

        assert exc_info.value.code == 0

    def test_run_without_credentials_fails(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([
                "--config", str(tmp_path / "config.json"),
                "--log-dir", str(tmp_path / "logs"),
                "run", "cleanup-deals",
            ])

        assert exc_info.value.code == 1
        assert (tmp_path / "logs" / "cron-cleanup-deals.log").exists()

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            main(["--version"])

        assert __version__ in capsys.readouterr().out
