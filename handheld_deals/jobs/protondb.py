"""ProtonDB tier synchronization."""

from datetime import datetime

import structlog

from ..models import JobStats
from ..services.protondb_client import validate_summary
from .base import HOUR, SyncJob

log = structlog.stdlib.get_logger()


class SyncProtonDbJob(SyncJob):
    name = "sync-protondb"
    schedule = "0 */6 * * *"
    interval_seconds = 6 * HOUR
    description = "Fill in missing ProtonDB tiers"

    async def run(self, now: datetime) -> JobStats:
        stats = self.new_stats()
        items = await self.session.read_items(
            "games",
            filter={"_and": [
                {"steam_app_id": {"_nnull": True}},
                {"_or": [
                    {"protondb_tier": {"_null": True}},
                    {"protondb_tier": {"_eq": "unknown"}},
                ]},
            ]},
            fields=["id", "title", "steam_app_id", "protondb_tier"],
            limit=self.config.batch_limit,
        )
        log.info("Games missing a ProtonDB tier", count=len(items))

        for item in items:
            if self.cancelled:
                break
            stats.processed += 1
            game_id = str(item.get("id"))
            title = item.get("title")
            try:
                summary = await self.protondb.fetch_summary(str(item.get("steam_app_id")))
                if summary is None:
                    stats.skipped += 1
                    stats.count("no_data")
                    continue

                verdict = validate_summary(summary)
                if verdict.tier is None:
                    log.info("ProtonDB data rejected", title=title, reason=verdict.reason)
                    stats.skipped += 1
                    stats.count("rejected")
                    continue

                await self.session.update_item("games", game_id, {"protondb_tier": verdict.tier.value})
            except Exception as e:
                self.record_failure(stats, e, "sync_protondb", record_id=game_id, title=title)
                continue

            stats.updated += 1
            stats.count(verdict.tier.value)
            log.info("ProtonDB tier updated", title=title, tier=verdict.tier.value, reports=summary.total_reports)

        return stats
