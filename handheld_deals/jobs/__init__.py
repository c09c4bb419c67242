"""Scheduled sync jobs and their registry."""

from .alerts import ProcessPriceAlertsJob
from .base import JobContext, SyncJob
from .battery import EstimateBatteryJob
from .deals import CleanupDealsJob, FetchDealsJob
from .events import UpdateEventStatusJob
from .preferences import CleanupPreferencesJob
from .protondb import SyncProtonDbJob
from .staleness import DowngradeStaleDataJob, FlagStaleReviewsJob
from .steam import SyncSteamJob

JOBS: dict[str, type[SyncJob]] = {
    job.name: job
    for job in (
        FetchDealsJob,
        ProcessPriceAlertsJob,
        UpdateEventStatusJob,
        SyncProtonDbJob,
        SyncSteamJob,
        CleanupDealsJob,
        CleanupPreferencesJob,
        EstimateBatteryJob,
        DowngradeStaleDataJob,
        FlagStaleReviewsJob,
    )
}


def get_job_class(name: str) -> type[SyncJob]:
    """Look up a job by name. Raises KeyError for unknown names."""
    return JOBS[name]


def job_intervals() -> dict[str, int]:
    """Expected run interval per job, for the log-age health check."""
    return {name: job.interval_seconds for name, job in JOBS.items()}


__all__ = [
    "JOBS",
    "CleanupDealsJob",
    "CleanupPreferencesJob",
    "DowngradeStaleDataJob",
    "EstimateBatteryJob",
    "FetchDealsJob",
    "FlagStaleReviewsJob",
    "JobContext",
    "ProcessPriceAlertsJob",
    "SyncJob",
    "SyncProtonDbJob",
    "SyncSteamJob",
    "UpdateEventStatusJob",
    "get_job_class",
    "job_intervals",
]
