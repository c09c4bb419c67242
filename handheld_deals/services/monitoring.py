"""Run monitoring: Discord error alerts, healthcheck pings, log-age checks."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import httpx
import structlog

from ..models import JobStats
from .http_client import HttpClientService
from .logging import job_log_path

log = structlog.stdlib.get_logger()

CRITICAL_ERROR_RATE = 1.0
HIGH_ERROR_RATE = 0.5
MEDIUM_ERROR_RATE = 0.1


class AlertSeverity(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


EMBED_COLORS: dict[AlertSeverity, int] = {
    AlertSeverity.CRITICAL: 15158332,
    AlertSeverity.HIGH: 16744272,
    AlertSeverity.MEDIUM: 16776960,
    AlertSeverity.LOW: 3447003,
}


def severity_for_error_rate(error_rate: float) -> AlertSeverity | None:
    """Alert severity for a run's error rate; None below the alert floor."""
    if error_rate >= CRITICAL_ERROR_RATE:
        return AlertSeverity.CRITICAL
    if error_rate >= HIGH_ERROR_RATE:
        return AlertSeverity.HIGH
    if error_rate >= MEDIUM_ERROR_RATE:
        return AlertSeverity.MEDIUM
    return None


def build_alert_embed(
    job_name: str,
    message: str,
    severity: AlertSeverity,
    now: datetime,
    fields: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "title": "Handheld Deals - Error Alert",
        "description": (
            f"**Job:** {job_name}\n**Severity:** {severity.value.upper()}\n\n**Error:**\n{message}"
        ),
        "color": EMBED_COLORS[severity],
        "timestamp": now.isoformat(),
        "fields": [
            {"name": name, "value": str(value), "inline": True}
            for name, value in (fields or {}).items()
        ],
    }


class DiscordAlerter:
    """Posts error alerts to a Discord webhook. Without a webhook it only logs."""

    def __init__(self, http_client: HttpClientService, webhook_url: str | None = None) -> None:
        self.http_client = http_client
        self.webhook_url = webhook_url

    async def send_alert(
        self,
        job_name: str,
        message: str,
        severity: AlertSeverity,
        now: datetime,
        fields: dict[str, Any] | None = None,
    ) -> bool:
        """Send one alert. Returns whether it was delivered; never raises."""
        if not self.webhook_url:
            log.info("Discord webhook not configured, skipping alert", job=job_name, severity=severity.value)
            return False

        embed = build_alert_embed(job_name, message, severity, now, fields)
        try:
            await self.http_client.post(self.webhook_url, json={"embeds": [embed]})
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            log.error("Failed to send Discord alert", job=job_name, error=str(e))
            return False

        log.info("Error alert sent to Discord", job=job_name, severity=severity.value)
        return True

    async def check_error_threshold(self, stats: JobStats, now: datetime) -> AlertSeverity | None:
        """Alert when the run's error rate crosses a threshold."""
        if stats.processed == 0:
            return None

        severity = severity_for_error_rate(stats.error_rate)
        if severity is None:
            return None

        summary = "\n".join(stats.error_messages[:5]) or "See job log for details"
        await self.send_alert(
            stats.job_name,
            f"{stats.errors} of {stats.processed} records failed\n{summary}",
            severity,
            now,
            fields={
                "Processed": stats.processed,
                "Errors": stats.errors,
                "Error rate": f"{stats.error_rate:.0%}",
            },
        )
        return severity


class HealthcheckPinger:
    """Pings a per-job URL (healthchecks.io style) after a successful run."""

    def __init__(self, http_client: HttpClientService, urls: dict[str, str] | None = None) -> None:
        self.http_client = http_client
        self.urls = urls or {}

    async def ping(self, job_name: str) -> bool:
        url = self.urls.get(job_name)
        if not url:
            return False
        try:
            await self.http_client.get(url)
        except (httpx.HTTPStatusError, httpx.RequestError) as e:
            log.warning("Healthcheck ping failed", job=job_name, error=str(e))
            return False
        log.debug("Healthcheck pinged", job=job_name)
        return True


@dataclass(frozen=True)
class LogHealth:
    job_name: str
    healthy: bool
    age_seconds: float | None
    reason: str | None = None


@dataclass(frozen=True)
class HealthReport:
    checks: list[LogHealth]

    @property
    def healthy(self) -> bool:
        return all(check.healthy for check in self.checks)


def check_log_age(path: Path, job_name: str, interval_seconds: int, now: datetime) -> LogHealth:
    """A job is healthy when its log was written within twice its interval."""
    if not path.exists():
        return LogHealth(job_name, False, None, "Log file not found")

    modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    age = (now - modified).total_seconds()
    threshold = interval_seconds * 2
    if age > threshold:
        return LogHealth(
            job_name,
            False,
            age,
            f"Last run {round(age / 60)} minutes ago (expected every {round(interval_seconds / 60)} min)",
        )
    return LogHealth(job_name, True, age)


def check_job_logs(log_dir: Path, intervals: dict[str, int], now: datetime) -> HealthReport:
    """Check every watched job's cron log."""
    checks = [
        check_log_age(job_log_path(log_dir, job_name), job_name, interval, now)
        for job_name, interval in intervals.items()
    ]
    for check in checks:
        if check.healthy:
            log.info("Job healthy", job=check.job_name, age_minutes=round((check.age_seconds or 0) / 60))
        else:
            log.warning("Job unhealthy", job=check.job_name, reason=check.reason)
    return HealthReport(checks)
