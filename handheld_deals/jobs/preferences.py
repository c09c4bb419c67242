"""Expired anonymous device preference cleanup."""

from datetime import datetime

import structlog

from ..models import JobStats
from ..services.records import format_timestamp, preference_from_item
from .base import DAY, SyncJob

log = structlog.stdlib.get_logger()


class CleanupPreferencesJob(SyncJob):
    name = "cleanup-preferences"
    schedule = "0 5 * * *"
    interval_seconds = DAY
    description = "Delete expired user device preferences"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        items = await self.session.read_items(
            "user_preferences",
            filter={"expires_at": {"_lt": format_timestamp(now)}},
            fields=["id", "device", "created_at", "expires_at"],
        )
        if not items:
            log.info("No expired preferences")
            return stats

        preferences = [preference_from_item(item) for item in items]
        stats.processed = len(preferences)
        for preference in preferences:
            stats.count(preference.device or "unset")

        lifetimes = [
            (p.expires_at - p.created_at).total_seconds() / DAY
            for p in preferences
            if p.created_at and p.expires_at
        ]
        average_lifetime_days = round(sum(lifetimes) / len(lifetimes), 1) if lifetimes else None

        try:
            await self.session.delete_items("user_preferences", [p.id for p in preferences])
        except Exception as e:
            self.record_failure(stats, e, "delete_preferences", collection="user_preferences")
            stats.errors = stats.processed
            return stats

        log.info("Deleted expired preferences", count=len(preferences), average_lifetime_days=average_lifetime_days)
        return stats
