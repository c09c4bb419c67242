"""Common machinery for scheduled sync jobs."""

from dataclasses import dataclass
from datetime import datetime

import structlog

from ..models import AppConfig, JobStats
from ..services.cheapshark_client import CheapSharkClient
from ..services.cms_client import DirectusSession
from ..services.errors import ConfigurationError, handle_error
from ..services.protondb_client import ProtonDbClient
from ..services.steam_client import SteamClient

log = structlog.stdlib.get_logger()

HOUR = 3600
DAY = 24 * HOUR
WEEK = 7 * DAY


@dataclass
class JobContext:
    """Dependencies handed to a job for one run."""
    session: DirectusSession
    config: AppConfig
    cheapshark: CheapSharkClient | None = None
    steam: SteamClient | None = None
    protondb: ProtonDbClient | None = None


class SyncJob:
    """A scheduled, idempotent task.

    Subclasses set ``name``, ``schedule`` (cron syntax, documentation only)
    and ``interval_seconds`` (used by the log-age health check), and
    implement ``run``.
    """

    name: str = ""
    schedule: str = ""
    interval_seconds: int = DAY
    description: str = ""

    def __init__(self, context: JobContext) -> None:
        self.context = context
        self._cancelled = False

    @property
    def session(self) -> DirectusSession:
        return self.context.session

    @property
    def config(self) -> AppConfig:
        return self.context.config

    async def run(self, now: datetime) -> JobStats:
        raise NotImplementedError

    def cancel(self) -> None:
        """Stop after the record currently being processed."""
        self._cancelled = True
        log.info("Job cancellation requested", job=self.name)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def new_stats(self) -> JobStats:
        return JobStats(job_name=self.name)

    def record_failure(
        self,
        stats: JobStats,
        error: Exception,
        operation: str,
        record_id: str | None = None,
        title: str | None = None,
        collection: str | None = None,
    ) -> None:
        """Log one record's failure through the error service and count it."""
        user_error = handle_error(
            error,
            operation=operation,
            component=self.name,
            context={"record_id": record_id, "title": title, "collection": collection},
        )
        stats.errors += 1
        label = title or record_id or "record"
        stats.error_messages.append(f"{label}: {user_error.message}")

    @property
    def cheapshark(self) -> CheapSharkClient:
        if self.context.cheapshark is None:
            raise ConfigurationError(f"{self.name} needs a CheapShark client", setting="cheapshark_base_url")
        return self.context.cheapshark

    @property
    def steam(self) -> SteamClient:
        if self.context.steam is None:
            raise ConfigurationError(f"{self.name} needs a Steam client", setting="steam_store_url")
        return self.context.steam

    @property
    def protondb(self) -> ProtonDbClient:
        if self.context.protondb is None:
            raise ConfigurationError(f"{self.name} needs a ProtonDB client", setting="protondb_url")
        return self.context.protondb
